"""Unit tests for the resolution steps: matching, primary resolution, novelty, view building."""

from datetime import datetime, timedelta, timezone

import pytest

from identilink.application import (
    build_identity,
    find_matches,
    has_new_information,
    resolve_primary,
)
from identilink.domain import (
    PRIMARY,
    SECONDARY,
    Contact,
    InternalInconsistency,
    InvalidInput,
)
from identilink.infrastructure import InMemoryContactStore

T0 = datetime(2023, 4, 1, tzinfo=timezone.utc)


def _c(contact_id, email=None, phone=None, linked_id=None, days=None) -> Contact:
    return Contact(
        id=contact_id,
        email=email,
        phone_number=phone,
        linked_id=linked_id,
        link_precedence=SECONDARY if linked_id is not None else PRIMARY,
        created_at=T0 + timedelta(days=contact_id if days is None else days),
    )


def _store(*contacts: Contact) -> InMemoryContactStore:
    store = InMemoryContactStore()
    for contact in contacts:
        store.put(contact)
    return store


# --- Contact ---


def test_contact_rejects_unknown_precedence() -> None:
    with pytest.raises(ValueError):
        Contact(id=1, email="a@x.com", link_precedence="tertiary")


def test_memory_repository_lookups() -> None:
    store = _store(_c(1, "a@x.com", "111"), _c(2, "b@x.com", None, linked_id=1))
    with store.unit_of_work() as repo:
        assert repo.find_by_id(2).linked_id == 1
        assert repo.find_by_id(3) is None
        assert [c.id for c in repo.find_by_ids([2, 1, 99])] == [1, 2]
        assert repo.update(99, link_precedence=PRIMARY, linked_id=None) is None


# --- find_matches ---


def test_find_matches_requires_email_or_phone() -> None:
    store = _store()
    with store.unit_of_work() as repo, pytest.raises(InvalidInput):
        find_matches(repo, None, None)


def test_find_matches_unknown_identity_is_empty() -> None:
    store = _store(_c(1, "a@x.com", "111"))
    with store.unit_of_work() as repo:
        assert find_matches(repo, "z@x.com", "999") == []


def test_find_matches_by_either_field() -> None:
    store = _store(_c(1, "a@x.com", "111"), _c(2, "b@x.com", "222"), _c(3, "c@x.com", None))
    with store.unit_of_work() as repo:
        assert [c.id for c in find_matches(repo, "a@x.com", "222")] == [1, 2]
        assert [c.id for c in find_matches(repo, None, "111")] == [1]


def test_find_matches_ignores_absent_field() -> None:
    # A stored contact without a phone must not match a request without a phone.
    store = _store(_c(1, "a@x.com", None))
    with store.unit_of_work() as repo:
        assert find_matches(repo, "b@x.com", None) == []


# --- resolve_primary ---


def test_resolve_single_primary_does_not_mutate() -> None:
    store = _store(_c(1, "a@x.com", "111"), _c(2, "b@x.com", "111", linked_id=1))
    before = store.list_all()
    with store.unit_of_work() as repo:
        primary = resolve_primary(repo, [before[1]])
    assert primary.id == 1
    assert store.list_all() == before


def test_resolve_picks_oldest_primary_by_created_at_not_id() -> None:
    store = _store(_c(1, "a@x.com", "111", days=10), _c(2, "b@x.com", "222", days=1))
    with store.unit_of_work() as repo:
        primary = resolve_primary(repo, store.list_all())
    assert primary.id == 2
    demoted = {c.id: c for c in store.list_all()}[1]
    assert demoted.link_precedence == SECONDARY
    assert demoted.linked_id == 2


def test_resolve_skips_missing_parent_when_another_primary_exists() -> None:
    store = _store(_c(1, "a@x.com", "111"), _c(2, "b@x.com", "222", linked_id=99))
    with store.unit_of_work() as repo:
        primary = resolve_primary(repo, store.list_all())
    assert primary.id == 1


def test_resolve_without_matches_is_inconsistent() -> None:
    store = _store()
    with store.unit_of_work() as repo, pytest.raises(InternalInconsistency):
        resolve_primary(repo, [])


# --- has_new_information ---


def test_novelty() -> None:
    cluster = [_c(1, "a@x.com", "111"), _c(2, "b@x.com", None, linked_id=1)]
    assert has_new_information(cluster, "c@x.com", None) is True
    assert has_new_information(cluster, None, "222") is True
    assert has_new_information(cluster, "b@x.com", "111") is False
    assert has_new_information(cluster, "a@x.com", None) is False
    assert has_new_information(cluster, None, None) is False


# --- build_identity ---


def test_build_identity_primary_values_first_and_deduplicated() -> None:
    cluster = [
        _c(3, "c@x.com", "111", linked_id=2),
        _c(2, "b@x.com", "222"),
        _c(4, "b@x.com", "", linked_id=2),
        _c(5, None, "333", linked_id=2),
    ]
    identity = build_identity(cluster)
    assert identity.primary_contact_id == 2
    assert identity.emails == ["b@x.com", "c@x.com"]
    assert identity.phone_numbers == ["222", "111", "333"]
    assert identity.secondary_contact_ids == [3, 4, 5]


def test_build_identity_falls_back_to_oldest_without_primary() -> None:
    cluster = [_c(6, "f@x.com", None, linked_id=1), _c(4, "d@x.com", None, linked_id=1)]
    identity = build_identity(cluster)
    assert identity.primary_contact_id == 4
    assert identity.emails == ["d@x.com", "f@x.com"]
    assert identity.secondary_contact_ids == [6]


def test_build_identity_empty_cluster_is_inconsistent() -> None:
    with pytest.raises(InternalInconsistency):
        build_identity([])


def test_response_shape() -> None:
    identity = build_identity([_c(1, "a@x.com", "111"), _c(2, None, "222", linked_id=1)])
    assert identity.to_response() == {
        "contact": {
            "primaryContactId": 1,
            "emails": ["a@x.com"],
            "phoneNumbers": ["111", "222"],
            "secondaryContactIds": [2],
        }
    }
