"""
Tests for scheduling sessions and launching video calls.
"""
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest
from sqlalchemy import func, select

from tutorhub.core.exceptions import Conflict, ValidationError
from tutorhub.models import Message, ScheduledSession, SessionStatus
from tutorhub.schemas.session_schemas import ScheduleSessionRequest
from tutorhub.services.chat.room import ChatRoomSession
from tutorhub.services.scheduling_service import SchedulingService
from tutorhub.services.video_call_service import (
    VideoCallService, build_meeting_url, generate_room_name,
)
from tests.conftest import assign, auth_headers, make_profile, make_session, make_teacher, open_conversation

NOW = datetime(2026, 5, 10, 9, 0, tzinfo=timezone.utc)


def form(**overrides) -> ScheduleSessionRequest:
    fields = {"title": "Calculus", "date": "2026-05-11", "time": "16:30", "duration": 90}
    fields.update(overrides)
    return ScheduleSessionRequest(**fields)


@pytest.fixture
async def pair(db):
    teacher = await make_teacher(db, tutor_id=7, first_name="Alan", email="alan@example.com")
    student = await make_profile(db)
    await assign(db, student, 7)
    return teacher, student


class TestResolveTimes:

    @pytest.fixture
    def service(self, db):
        return SchedulingService(db)

    def test_end_is_start_plus_duration(self, service):
        start, end = service.resolve_times(form(), NOW)

        assert start == datetime(2026, 5, 11, 16, 30, tzinfo=timezone.utc)
        assert end - start == timedelta(minutes=90)

    def test_past_time_is_rejected(self, service):
        """Scheduling before now is refused before any insert."""
        with pytest.raises(ValidationError) as exc:
            service.resolve_times(form(date="2026-05-10", time="08:59"), NOW)
        assert exc.value.detail["message"] == "Please schedule the session for a future date and time."

    def test_now_is_not_in_the_future(self, service):
        with pytest.raises(ValidationError):
            service.resolve_times(form(date="2026-05-10", time="09:00"), NOW)

    @pytest.mark.parametrize("missing", ["title", "date", "time"])
    def test_missing_fields(self, service, missing):
        with pytest.raises(ValidationError) as exc:
            service.resolve_times(form(**{missing: None}), NOW)
        assert exc.value.detail["error"] == "Missing information"

    def test_blank_title(self, service):
        with pytest.raises(ValidationError):
            service.resolve_times(form(title="   "), NOW)

    def test_duration_must_be_allowed(self, service):
        with pytest.raises(ValidationError) as exc:
            service.resolve_times(form(duration=45), NOW)
        assert exc.value.detail["error"] == "Invalid duration"

    def test_garbled_date(self, service):
        with pytest.raises(ValidationError) as exc:
            service.resolve_times(form(date="11/05/2026"), NOW)
        assert exc.value.detail["error"] == "Invalid date/time"


class TestSchedule:

    async def test_schedule_inserts_and_announces(self, db, pair, feed):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        subscription = await feed.subscribe(7)

        session = await SchedulingService(db, feed).schedule(conversation, form(), NOW)

        assert session.status == SessionStatus.SCHEDULED
        assert session.meeting_link is None
        assert session.student_id == student.id
        announcement = subscription.queue.get_nowait()
        assert announcement.content == 'New session scheduled: "Calculus" on 2026-05-11 16:30 UTC'
        assert announcement.sender_type == "teacher"

    async def test_rejected_form_inserts_nothing(self, db, pair):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)

        with pytest.raises(ValidationError):
            await SchedulingService(db).schedule(conversation, form(date="2026-05-09"), NOW)

        assert await db.scalar(select(func.count(ScheduledSession.id))) == 0
        assert await db.scalar(select(func.count(Message.id))) == 0

    async def test_idempotency_key_returns_same_session(self, db, pair):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        service = SchedulingService(db)

        first = await service.schedule(conversation, form(idempotency_key="k-1"), NOW)
        second = await service.schedule(conversation, form(idempotency_key="k-1"), NOW)

        assert first.id == second.id
        assert await db.scalar(select(func.count(ScheduledSession.id))) == 1
        assert await db.scalar(select(func.count(Message.id))) == 1

    async def test_idempotency_key_from_another_conversation(self, db, pair):
        teacher, student = pair
        other = await make_profile(db)
        await assign(db, other, 7)
        service = SchedulingService(db)
        await service.schedule(await open_conversation(db, teacher, 7, student.id), form(idempotency_key="k-2"), NOW)

        with pytest.raises(Conflict):
            await service.schedule(await open_conversation(db, other, 7), form(idempotency_key="k-2"), NOW)

    async def test_room_does_not_echo_its_own_announcement(self, db, pair, feed):
        teacher, student = pair
        frames = []

        async def emit(frame):
            frames.append(frame)

        room = ChatRoomSession(db, await open_conversation(db, teacher, 7, student.id), feed, None, emit, clock=lambda: NOW)
        await room.open()
        frames.clear()

        await room.handle_frame({"type": "schedule_session", "session": form().model_dump()})

        assert [f["type"] for f in frames] == ["session_scheduled"]
        event = room.subscription.queue.get_nowait()
        assert room.stream.apply_feed_event(event) is None
        await room.close()


class TestVideoCall:

    def test_room_name(self):
        assert generate_room_name(7, NOW) == f"tutor-7-{int(NOW.timestamp() * 1000)}"

    def test_plain_meeting_url(self):
        assert build_meeting_url("tutor-7-1", domain="meet.example.org") == "https://meet.example.org/tutor-7-1"

    def test_meeting_url_carries_user_info(self):
        url = urlsplit(build_meeting_url("tutor-7-1", "Alan", "alan@example.com", domain="meet.example.org"))
        params = parse_qs(url.query)

        assert url.path == "/tutor-7-1"
        assert params["userInfo.name"] == ["Alan"]
        assert params["userInfo.email"] == ["alan@example.com"]
        assert params["config.startWithVideoMuted"] == ["false"]

    async def test_launch_starts_next_upcoming_session(self, db, pair):
        teacher, student = pair
        later = await make_session(db, student, 7, NOW + timedelta(days=2))
        upcoming = await make_session(db, student, 7, NOW + timedelta(hours=1))

        launch = await VideoCallService(db).launch(await open_conversation(db, teacher, 7, student.id), NOW)

        assert launch.session_id == upcoming.id
        assert launch.open_after_seconds == 1.5
        assert "userInfo.name=Alan" in launch.url
        await db.refresh(upcoming)
        await db.refresh(later)
        assert upcoming.status == SessionStatus.IN_PROGRESS
        assert upcoming.meeting_link == launch.url
        assert later.status == SessionStatus.SCHEDULED

    async def test_launch_without_upcoming_session(self, db, pair):
        _, student = pair

        launch = await VideoCallService(db).launch(await open_conversation(db, student, 7), NOW)

        assert launch.session_id is None
        assert launch.room_name.startswith("tutor-7-")


class TestSchedulingHttp:

    async def test_schedule_and_list(self, client, pair):
        teacher, student = pair
        headers = auth_headers(teacher)
        params = {"student": str(student.id)}
        body = {"title": "Physics", "date": "2099-01-02", "time": "10:00", "duration": 60}

        response = await client.post("/api/v1/chat/7/sessions", json=body, params=params, headers=headers)
        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "scheduled"

        response = await client.get("/api/v1/chat/7/sessions", params=params, headers=headers)
        assert [s["id"] for s in response.json()] == [created["id"]]

    async def test_past_schedule_is_422(self, client, pair):
        _, student = pair
        body = {"title": "Physics", "date": "2000-01-01", "time": "10:00", "duration": 60}

        response = await client.post("/api/v1/chat/7/sessions", json=body, headers=auth_headers(student))

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "Invalid date/time"

    async def test_launch_call(self, client, pair):
        _, student = pair

        response = await client.post("/api/v1/chat/7/calls/launch", headers=auth_headers(student))

        assert response.status_code == 200
        assert response.json()["url"].startswith("https://meet.jit.si/tutor-7-")
