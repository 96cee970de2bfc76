"""
FastAPI backend: POST /identify over the identity core.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
import os
from functools import partial
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root (when run from repo root or from Docker)
for path in (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path.cwd() / ".env",
):
    if path.exists():
        load_dotenv(path)
        break

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from neo4j import GraphDatabase
from pydantic import BaseModel

from identilink.application import ContactStore, IdentityService
from identilink.domain import InvalidInput
from identilink.infrastructure import (
    InMemoryContactStore,
    Neo4jContactStore,
    canonical_phone,
    ensure_contact_schema,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

STORE_NEO4J = "neo4j"
STORE_MEMORY = "memory"
MISSING_FIELDS_MESSAGE = "Email or phone number must be provided."
SERVER_ERROR_MESSAGE = "Internal Server Error"
INVALID_BODY_MESSAGE = "Invalid request body: email and phoneNumber must be strings or null."


def _get_driver():
    uri = os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip()
    user = os.environ.get("NEO4J_USER", "neo4j").strip()
    password = os.environ.get("NEO4J_PASSWORD", "password").strip()
    return GraphDatabase.driver(uri, auth=(user, password))


def _neo4j_database() -> str | None:
    return os.environ.get("NEO4J_DATABASE", "").strip() or None


def _build_store(app: FastAPI) -> ContactStore:
    kind = os.environ.get("IDENTITY_STORE", STORE_NEO4J).strip().lower()
    if kind == STORE_MEMORY:
        logger.info("Using in-memory contact store (data is lost on restart)")
        return InMemoryContactStore()
    if kind != STORE_NEO4J:
        raise RuntimeError(f"Unknown IDENTITY_STORE {kind!r}; use 'neo4j' or 'memory'.")
    database = _neo4j_database()
    app.state.driver = _get_driver()
    ensure_contact_schema(app.state.driver, database=database)
    return Neo4jContactStore(app.state.driver, database=database)


def _get_store(app: FastAPI) -> ContactStore:
    if getattr(app.state, "store", None) is None:
        app.state.store = _build_store(app)
    return app.state.store


def get_service(app: FastAPI) -> IdentityService:
    region = os.environ.get("PHONE_DEFAULT_REGION", "").strip().upper() or None
    normalize_phone = partial(canonical_phone, default_region=region) if region else None
    return IdentityService(_get_store(app), normalize_phone=normalize_phone)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.driver = getattr(app.state, "driver", None)
    try:
        _get_store(app)
        yield
    finally:
        if getattr(app.state, "driver", None) is not None:
            app.state.driver.close()
            app.state.driver = None


app = FastAPI(
    title="Identity Reconciliation API",
    description="Identifies customers and consolidates their contact information.",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def invalid_body(request: Request, exc: RequestValidationError):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"message": INVALID_BODY_MESSAGE})


# --- REST: health ---


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/docs")


# --- REST: identify ---


class IdentifyBody(BaseModel):
    email: str | None = None
    phoneNumber: str | int | None = None


class IdentifiedContact(BaseModel):
    primaryContactId: int
    emails: list[str]
    phoneNumbers: list[str]
    secondaryContactIds: list[int]


class IdentifyResponse(BaseModel):
    contact: IdentifiedContact


class ErrorMessage(BaseModel):
    message: str


@app.post(
    "/identify",
    response_model=IdentifyResponse,
    responses={400: {"model": ErrorMessage}, 500: {"model": ErrorMessage}},
)
def identify(request: Request, body: IdentifyBody | None = None):
    body = body or IdentifyBody()
    email = (body.email or "").strip()
    phone_number = str(body.phoneNumber).strip() if body.phoneNumber is not None else ""
    if not email and not phone_number:
        return JSONResponse(status_code=400, content={"message": MISSING_FIELDS_MESSAGE})

    try:
        service = get_service(request.app)
        result = service.identify(email or None, phone_number or None)
    except InvalidInput as e:
        return JSONResponse(status_code=400, content={"message": str(e)})
    except Exception:
        logger.exception("Identify failed")
        return JSONResponse(status_code=500, content={"message": SERVER_ERROR_MESSAGE})
    return result.to_response()
