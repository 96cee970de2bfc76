#!/usr/bin/env python3
"""Create the Neo4j constraints and indexes used by the contact store.

Unique ids for Contact, ContactSequence and IdentifyLock; indexes on email,
phone_number and linked_id. Run from repo root with .env (NEO4J_URI, NEO4J_USER,
NEO4J_PASSWORD, optional NEO4J_DATABASE). Idempotent.
"""
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT / "src"))

from dotenv import load_dotenv  # noqa: E402
from neo4j import GraphDatabase  # noqa: E402

from identilink.infrastructure import ensure_contact_schema  # noqa: E402

load_dotenv(REPO_ROOT / ".env")


def main() -> int:
    uri = os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip()
    user = os.environ.get("NEO4J_USER", "neo4j").strip()
    password = os.environ.get("NEO4J_PASSWORD", "password").strip()
    database = os.environ.get("NEO4J_DATABASE", "").strip() or None
    driver = GraphDatabase.driver(uri, auth=(user, password))
    try:
        ensure_contact_schema(driver, database=database)
        print(f"Contact schema ensured on {uri} (database: {database or 'default'}).")
        return 0
    finally:
        driver.close()


if __name__ == "__main__":
    sys.exit(main())
