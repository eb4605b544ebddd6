"""
Test configuration and fixtures.

Provides:
- In-memory SQLite schema (created and dropped around each test)
- Team members per role and JWT cookies for authenticated tests
- HTTPX AsyncClient with proper headers
- Service components (audit log, timeline, lifecycle) bound to the test session
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Must be set before any gabinete import reads settings
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret-with-enough-length-for-hs256")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gabinete.core.config import settings
from gabinete.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_audit_log, get_db
from gabinete.core.security import create_session_token
from gabinete.db.base import Base
from gabinete.db.enums import EntityKind, Role, UserStatus
from gabinete.db.models import Category, User
from gabinete.db.session import SessionLocal, engine
from gabinete.main import app
from gabinete.services.audit_service import AuditLog
from gabinete.services.lifecycle_service import EntityLifecycle
from gabinete.services.timeline_service import Timeline


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    App code commits freely; dropping the tables afterwards isolates tests.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch):
    """Keep uploaded files inside the test's tmp dir."""
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local", raising=False)
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path / "storage"), raising=False)
    return tmp_path / "storage"


def make_user(
    db: Session,
    role: Role = Role.STAFF,
    name: str | None = None,
    status: UserStatus = UserStatus.ACTIVE,
    password_hash: str | None = None,
) -> User:
    suffix = uuid.uuid4().hex[:8]
    user = User(
        name=name or f"Test {role.value.title()} {suffix}",
        email=f"{role.value.lower()}-{suffix}@test.com",
        username=f"{role.value.lower()}.{suffix}",
        role=role.value,
        status=status.value,
        sectors=[],
        password_hash=password_hash,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session) -> User:
    return make_user(db, Role.ADMIN, name="Ana Admin")


@pytest.fixture
def staff_user(db: Session) -> User:
    return make_user(db, Role.STAFF, name="Sergio Staff")


@pytest.fixture
def assessor_user(db: Session) -> User:
    return make_user(db, Role.ASSESSOR, name="Marcos Assessor")


@pytest.fixture
def category(db: Session) -> Category:
    cat = Category(name="Saúde", color="#EF4444")
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return cat


# =============================================================================
# Service component fixtures
# =============================================================================

class FailingAuditLog(AuditLog):
    """Audit log whose storage is unavailable."""

    def _persist(self, entry) -> None:
        raise SQLAlchemyError("audit store unavailable")


@pytest.fixture
def audit(db: Session) -> AuditLog:
    return AuditLog(db, user_agent="pytest")


@pytest.fixture
def timeline(db: Session, audit: AuditLog) -> Timeline:
    return Timeline(db, audit)


@pytest.fixture
def lifecycle(db: Session, audit: AuditLog, timeline: Timeline) -> EntityLifecycle:
    return EntityLifecycle(db, audit, timeline)


@pytest.fixture
def failing_lifecycle(db: Session) -> EntityLifecycle:
    audit = FailingAuditLog(db)
    return EntityLifecycle(db, audit, Timeline(db, audit))


def constituent_data(**overrides) -> dict:
    data = {
        "name": "Maria da Silva",
        "document": "12345678901",
        "mobile_phone": "11987654321",
        "address": {
            "zip_code": "01310100",
            "street": "AVENIDA PAULISTA",
            "number": "1000",
            "complement": "",
            "neighborhood": "BELA VISTA",
            "city": "SAO PAULO",
            "state": "SP",
        },
        "tags": ["APOIADOR"],
        "responsible_user_id": "",
    }
    data.update(overrides)
    return data


@pytest.fixture
def constituent(lifecycle: EntityLifecycle, staff_user: User):
    return lifecycle.create(EntityKind.CONSTITUENT, constituent_data(), staff_user).entity


@pytest.fixture
def demand(lifecycle: EntityLifecycle, staff_user: User, constituent, category):
    return lifecycle.create(
        EntityKind.DEMAND,
        {
            "constituent_id": constituent.id,
            "category_id": category.id,
            "title": "Street light broken",
            "description": "The street light in front of number 1000 is out.",
        },
        staff_user,
    ).entity


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def auth_for(user: User) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
    )
    return TestAuth(user=user, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

def _override_db(db: Session):
    def override_get_db():
        yield db
    app.dependency_overrides[get_db] = override_get_db


def _client_for(auth: TestAuth | None) -> AsyncClient:
    cookies = {auth.cookie_name: auth.token} if auth else None
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    )


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client (CSRF header set)."""
    _override_db(db)
    async with _client_for(None) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(db: Session, staff_user: User) -> AsyncGenerator[AsyncClient, None]:
    """Client signed in as a STAFF member."""
    _override_db(db)
    async with _client_for(auth_for(staff_user)) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    """Client signed in as an ADMIN."""
    _override_db(db)
    async with _client_for(auth_for(admin_user)) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def failing_audit(db: Session):
    """Route every request's audit writes to an unavailable store."""
    app.dependency_overrides[get_audit_log] = lambda: FailingAuditLog(db)
    yield
    app.dependency_overrides.pop(get_audit_log, None)
