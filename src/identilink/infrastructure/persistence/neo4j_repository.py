"""Neo4j implementation of ContactStore / ContactRepository.

Graph: one (:Contact {id, email, phone_number, linked_id, link_precedence, created_at,
updated_at, deleted_at}) node per observation. Ids come from a (:ContactSequence) counter.
Every unit of work is one explicit transaction that first writes to the single
(:IdentifyLock) node, so concurrent identify calls are serialized by Neo4j's write lock.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from neo4j.exceptions import DriverError, Neo4jError

from identilink.domain import Contact, StorageError
from identilink.domain.entities import utcnow

SEQUENCE_NAME = "contact"
LOCK_NAME = "identify"

_SCHEMA_QUERIES = (
    "CREATE CONSTRAINT contact_id_unique IF NOT EXISTS "
    "FOR (c:Contact) REQUIRE c.id IS UNIQUE",
    "CREATE CONSTRAINT contact_sequence_unique IF NOT EXISTS "
    "FOR (s:ContactSequence) REQUIRE s.name IS UNIQUE",
    "CREATE CONSTRAINT identify_lock_unique IF NOT EXISTS "
    "FOR (l:IdentifyLock) REQUIRE l.name IS UNIQUE",
    "CREATE INDEX contact_email IF NOT EXISTS FOR (c:Contact) ON (c.email)",
    "CREATE INDEX contact_phone_number IF NOT EXISTS FOR (c:Contact) ON (c.phone_number)",
    "CREATE INDEX contact_linked_id IF NOT EXISTS FOR (c:Contact) ON (c.linked_id)",
    f"MERGE (:IdentifyLock {{ name: '{LOCK_NAME}' }})",
)

_ACQUIRE_LOCK_QUERY = """
MERGE (l:IdentifyLock { name: $name })
SET l.acquired_at = $now
"""

_NEXT_ID_QUERY = """
MERGE (s:ContactSequence { name: $name })
ON CREATE SET s.value = 0
SET s.value = s.value + 1
RETURN s.value AS id
"""

_BUMP_SEQUENCE_QUERY = """
MERGE (s:ContactSequence { name: $name })
ON CREATE SET s.value = $id
SET s.value = CASE WHEN s.value < $id THEN $id ELSE s.value END
"""

_FIND_BY_EMAIL_OR_PHONE_QUERY = """
CALL {
    MATCH (c:Contact) WHERE c.email = $email RETURN c
    UNION
    MATCH (c:Contact) WHERE c.phone_number = $phone_number RETURN c
}
RETURN c
ORDER BY c.created_at, c.id
"""

_FIND_BY_IDS_QUERY = """
MATCH (c:Contact)
WHERE c.id IN $ids
RETURN c
ORDER BY c.created_at, c.id
"""

_FIND_CLUSTER_QUERY = """
MATCH (c:Contact)
WHERE c.id = $primary_id OR c.linked_id = $primary_id
RETURN c
ORDER BY c.created_at, c.id
"""

_CREATE_QUERY = """
CREATE (c:Contact {
    id: $id,
    email: $email,
    phone_number: $phone_number,
    linked_id: $linked_id,
    link_precedence: $link_precedence,
    created_at: $created_at,
    updated_at: $updated_at,
    deleted_at: $deleted_at
})
RETURN c
"""

_UPDATE_LINKS_QUERY = """
MATCH (c:Contact)
WHERE c.id IN $ids
SET c.link_precedence = $link_precedence,
    c.linked_id = $linked_id,
    c.updated_at = $updated_at
RETURN c
"""

_LIST_ALL_QUERY = """
MATCH (c:Contact)
RETURN c
ORDER BY c.created_at, c.id
"""


def _datetime_to_iso(dt: datetime) -> str:
    # Fixed width so that ORDER BY on the string matches chronological order.
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _iso_to_datetime(s: str) -> datetime:
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (Neo4jError, DriverError) as e:
        raise StorageError(f"Neo4j {action} failed: {e}") from e


def ensure_contact_schema(driver, database: str | None = None) -> None:
    """Create constraints and indexes used by Neo4jContactStore if missing."""
    with _storage_errors("schema setup"), driver.session(database=database) as session:
        for query in _SCHEMA_QUERIES:
            session.run(query).consume()


class Neo4jContactStore:
    """Stores contacts in Neo4j. unit_of_work() yields a repository bound to one transaction."""

    def __init__(self, driver: object, database: str | None = None) -> None:
        self._driver = driver
        self._database = database

    @contextmanager
    def unit_of_work(self) -> Iterator["Neo4jContactRepository"]:
        with _storage_errors("session open"):
            session = self._driver.session(database=self._database)
        try:
            with _storage_errors("transaction begin"):
                tx = session.begin_transaction()
                tx.run(
                    _ACQUIRE_LOCK_QUERY, name=LOCK_NAME, now=_datetime_to_iso(utcnow())
                ).consume()
            try:
                yield Neo4jContactRepository(tx)
            except BaseException:
                tx.close()
                raise
            with _storage_errors("commit"):
                tx.commit()
        finally:
            session.close()

    def put(self, contact: Contact) -> Contact:
        """Store a fully specified contact as-is (fixtures, imported data)."""
        with _storage_errors("put"), self._driver.session(database=self._database) as session:
            session.execute_write(_put_contact, _contact_params(contact))
        return contact

    def list_all(self) -> list[Contact]:
        """Return all contacts, oldest first."""
        with _storage_errors("list"), self._driver.session(database=self._database) as session:
            result = session.run(_LIST_ALL_QUERY)
            return [_record_to_contact(rec) for rec in result]


class Neo4jContactRepository:
    """Repository bound to one open Neo4j transaction."""

    def __init__(self, tx: object) -> None:
        self._tx = tx

    def _fetch(self, action: str, query: str, **params) -> list[Contact]:
        with _storage_errors(action):
            result = self._tx.run(query, **params)
            return [_record_to_contact(rec) for rec in result]

    def find_by_email_or_phone(
        self, email: str | None, phone_number: str | None
    ) -> list[Contact]:
        if email is None and phone_number is None:
            return []
        return self._fetch(
            "match", _FIND_BY_EMAIL_OR_PHONE_QUERY, email=email, phone_number=phone_number
        )

    def find_by_id(self, contact_id: int) -> Contact | None:
        found = self.find_by_ids([contact_id])
        return found[0] if found else None

    def find_by_ids(self, contact_ids: Iterable[int]) -> list[Contact]:
        ids = sorted(set(contact_ids))
        if not ids:
            return []
        return self._fetch("lookup", _FIND_BY_IDS_QUERY, ids=ids)

    def find_cluster_members(self, primary_id: int) -> list[Contact]:
        return self._fetch("cluster lookup", _FIND_CLUSTER_QUERY, primary_id=primary_id)

    def insert(
        self,
        *,
        email: str | None,
        phone_number: str | None,
        link_precedence: str,
        linked_id: int | None = None,
    ) -> Contact:
        now = utcnow()
        with _storage_errors("insert"):
            record = self._tx.run(_NEXT_ID_QUERY, name=SEQUENCE_NAME).single()
            contact = Contact(
                id=record["id"],
                email=email,
                phone_number=phone_number,
                linked_id=linked_id,
                link_precedence=link_precedence,
                created_at=now,
                updated_at=now,
            )
            created = self._tx.run(_CREATE_QUERY, **_contact_params(contact)).single()
        return _record_to_contact(created)

    def update(
        self, contact_id: int, *, link_precedence: str, linked_id: int | None
    ) -> Contact | None:
        updated = self._fetch(
            "update",
            _UPDATE_LINKS_QUERY,
            ids=[contact_id],
            link_precedence=link_precedence,
            linked_id=linked_id,
            updated_at=_datetime_to_iso(utcnow()),
        )
        return updated[0] if updated else None

    def batch_update(
        self, contact_ids: Iterable[int], *, link_precedence: str, linked_id: int | None
    ) -> int:
        ids = sorted(set(contact_ids))
        if not ids:
            return 0
        updated = self._fetch(
            "batch update",
            _UPDATE_LINKS_QUERY,
            ids=ids,
            link_precedence=link_precedence,
            linked_id=linked_id,
            updated_at=_datetime_to_iso(utcnow()),
        )
        return len(updated)


def _put_contact(tx, params: dict) -> None:
    # Row and sequence bump commit together, under the same lock as identify.
    tx.run(_ACQUIRE_LOCK_QUERY, name=LOCK_NAME, now=_datetime_to_iso(utcnow())).consume()
    tx.run(_CREATE_QUERY, **params).consume()
    tx.run(_BUMP_SEQUENCE_QUERY, name=SEQUENCE_NAME, id=params["id"]).consume()


def _contact_params(contact: Contact) -> dict:
    return {
        "id": contact.id,
        "email": contact.email,
        "phone_number": contact.phone_number,
        "linked_id": contact.linked_id,
        "link_precedence": contact.link_precedence,
        "created_at": _datetime_to_iso(contact.created_at),
        "updated_at": _datetime_to_iso(contact.updated_at),
        "deleted_at": (
            _datetime_to_iso(contact.deleted_at) if contact.deleted_at else None
        ),
    }


def _record_to_contact(record) -> Contact:
    c = record["c"]
    deleted_at = c.get("deleted_at")
    return Contact(
        id=c["id"],
        email=c.get("email"),
        phone_number=c.get("phone_number"),
        linked_id=c.get("linked_id"),
        link_precedence=c["link_precedence"],
        created_at=_iso_to_datetime(c["created_at"]),
        updated_at=_iso_to_datetime(c["updated_at"]),
        deleted_at=_iso_to_datetime(deleted_at) if deleted_at else None,
    )
