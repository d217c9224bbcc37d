"""
Shared fixtures: a throwaway SQLite database per test, profile factories,
and an app wired to in-process feed, local storage and a mocked gateway.
"""
import itertools
from datetime import timedelta

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tutorhub.core.auth import Viewer, create_access_token
from tutorhub.core.clock import utcnow
from tutorhub.core.database import get_db
from tutorhub.main import app
from tutorhub.models import (
    AssignmentStatus, Base, Profile, ScheduledSession, SessionStatus,
    StudentTutorAssignment, UserType, VerificationStatus,
)
from tutorhub.services.access_gate import AccessGate
from tutorhub.services.chat.feed import MessageFeed, get_message_feed
from tutorhub.services.payment_service import RazorpayGateway, get_payment_gateway
from tutorhub.services.storage import LocalBlobStorage, get_blob_storage

GATEWAY_SECRET = "test-secret"

_emails = itertools.count(1)


async def make_profile(db: AsyncSession, user_type: UserType = UserType.STUDENT, **fields) -> Profile:
    n = next(_emails)
    profile = Profile(
        first_name=fields.pop("first_name", f"User{n}"),
        last_name=fields.pop("last_name", "Test"),
        email=fields.pop("email", f"user{n}@example.com"),
        user_type=user_type,
        **fields
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


async def make_teacher(db: AsyncSession, tutor_id: int, **fields) -> Profile:
    fields.setdefault("subject", "Mathematics")
    fields.setdefault("verification_status", VerificationStatus.APPROVED)
    return await make_profile(db, UserType.TEACHER, tutor_id=tutor_id, **fields)


async def assign(db: AsyncSession, student: Profile, tutor_id: int, status: str = AssignmentStatus.ACTIVE):
    assignment = StudentTutorAssignment(student_id=student.id, tutor_id=tutor_id, status=status)
    db.add(assignment)
    await db.commit()
    return assignment


async def make_session(db: AsyncSession, student: Profile, tutor_id: int, start, minutes: int = 60, **fields):
    session = ScheduledSession(
        student_id=student.id,
        tutor_id=tutor_id,
        title=fields.pop("title", "Algebra review"),
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        status=fields.pop("status", SessionStatus.SCHEDULED),
        **fields
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return session


async def open_conversation(db: AsyncSession, viewer_profile: Profile, tutor_id: int, student_id=None):
    return await AccessGate(db).authorize(Viewer.from_profile(viewer_profile), tutor_id, student_id)


def auth_headers(profile: Profile) -> dict:
    return {"Authorization": f"Bearer {create_access_token(profile.id)}"}


@pytest.fixture
def session_factory(tmp_path):
    path = tmp_path / "test.db"

    # Schema is created synchronously so no event loop is involved yet
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def feed():
    return MessageFeed()


@pytest.fixture
def storage(tmp_path):
    return LocalBlobStorage(str(tmp_path / "media"), "http://testserver")


@pytest.fixture
def gateway_requests():
    return []


@pytest.fixture
def gateway(gateway_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        gateway_requests.append(request)
        return httpx.Response(200, json={"id": "order_test123", "amount": 49900, "currency": "INR"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RazorpayGateway("rzp_test", GATEWAY_SECRET, client=client)


@pytest.fixture
def wired_app(session_factory, feed, storage, gateway):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_message_feed] = lambda: feed
    app.dependency_overrides[get_blob_storage] = lambda: storage
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(wired_app):
    transport = httpx.ASGITransport(app=wired_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def now():
    return utcnow()
