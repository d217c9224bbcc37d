"""
Tests for sending messages, attachments and the live feed.
"""
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from tutorhub.core.exceptions import DatabaseError, ValidationError
from tutorhub.models import Message, SenderRole, SessionStatus
from tutorhub.services.chat.chat_service import ChatService
from tutorhub.services.chat.feed import FeedEvent, SessionEvent, decode_event
from tutorhub.services.chat.room import ChatRoomSession
from tutorhub.services.storage import Attachment, validate_attachment
from tests.conftest import assign, auth_headers, make_profile, make_teacher, open_conversation

PNG = Attachment("diagram.png", "image/png", b"\x89PNG....")


class RecordingStorage:
    def __init__(self):
        self.uploads = []

    async def upload(self, bucket, path, data, content_type):
        self.uploads.append((bucket, path))
        return f"https://files.example/{bucket}/{path}"


@pytest.fixture
async def pair(db):
    teacher = await make_teacher(db, tutor_id=7)
    student = await make_profile(db)
    await assign(db, student, 7)
    return teacher, student


class TestAttachmentValidation:

    def test_allowed_types(self):
        for content_type in ("application/pdf", "image/jpeg", "image/png", "image/jpg"):
            validate_attachment(Attachment("f", content_type, b"x"))

    def test_rejects_other_types(self):
        with pytest.raises(ValidationError) as exc:
            validate_attachment(Attachment("notes.docx", "application/msword", b"x"))
        assert exc.value.detail["error"] == "Invalid file type"

    def test_rejects_files_over_limit(self):
        with pytest.raises(ValidationError) as exc:
            validate_attachment(Attachment("big.pdf", "application/pdf", b"x" * 11), max_bytes=10)
        assert exc.value.detail["error"] == "File too large"

    def test_extension(self):
        assert Attachment("Scan.PDF", "application/pdf", b"").extension == "pdf"
        assert Attachment("noext", "application/pdf", b"").extension == "bin"


class TestChatService:

    async def test_send_persists_and_publishes(self, db, pair, feed):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        subscription = await feed.subscribe(7)

        message = await ChatService(db, feed=feed).send_message(conversation, "  Hello  ", client_token="temp-1")

        assert message.content == "Hello"
        assert message.sender_type == SenderRole.TEACHER
        assert message.student_id == student.id
        published = subscription.queue.get_nowait()
        assert published.id == message.id
        assert published.client_token == "temp-1"

    async def test_empty_message_is_rejected(self, db, pair):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)

        with pytest.raises(ValidationError):
            await ChatService(db).send_message(conversation, "   ")

    async def test_file_only_message(self, db, pair):
        _, student = pair
        conversation = await open_conversation(db, student, 7)

        message = await ChatService(db).send_message(conversation, "", file_url="https://files.example/a.pdf")
        assert message.content == ""
        assert message.file_url == "https://files.example/a.pdf"

    async def test_history_is_scoped_to_the_pair(self, db, pair):
        teacher, student = pair
        other = await make_profile(db)
        await assign(db, other, 7)
        service = ChatService(db)

        await service.send_message(await open_conversation(db, student, 7), "mine")
        await service.send_message(await open_conversation(db, other, 7), "not mine")

        history = await service.get_history(await open_conversation(db, teacher, 7, student.id))
        assert [m.content for m in history] == ["mine"]

    async def test_duplicate_client_token_fails_cleanly(self, db, pair):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        service = ChatService(db)
        await service.send_message(conversation, "once", client_token="temp-5")

        with pytest.raises(DatabaseError):
            await service.send_message(conversation, "twice", client_token="temp-5")

    async def test_upload_path_is_per_viewer(self, db, pair):
        _, student = pair
        conversation = await open_conversation(db, student, 7)
        storage = RecordingStorage()

        url = await ChatService(db, storage=storage).upload_attachment(conversation, PNG)

        bucket, path = storage.uploads[0]
        assert bucket == "chat_files"
        assert path.startswith(f"{student.id}/") and path.endswith(".png")
        assert url.endswith(path)


class TestFeedEvent:

    def test_json_round_trip_keeps_identity(self):
        event = FeedEvent(
            id=uuid.uuid4(),
            student_id=uuid.uuid4(),
            tutor_id=3,
            sender_type=SenderRole.STUDENT,
            content="hi",
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        assert FeedEvent.from_json(event.to_json()) == event

    def test_session_events_share_the_channel(self):
        event = SessionEvent(uuid.uuid4(), uuid.uuid4(), 3, SessionStatus.COMPLETED, SenderRole.TEACHER)
        assert decode_event(event.to_json()) == event

    async def test_closed_subscription_stops_iteration(self, feed):
        subscription = await feed.subscribe(1)
        await subscription.close()

        assert [e async for e in subscription] == []
        assert 1 not in feed.subscriptions


class TestChatRoomSend:
    """Optimistic send through the per-socket room state."""

    @pytest.fixture
    def frames(self):
        return []

    @pytest.fixture
    def emit(self, frames):
        async def emit(frame):
            frames.append(frame)
        return emit

    async def test_teacher_hello_is_shown_then_confirmed(self, db, pair, feed, emit, frames):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        room = ChatRoomSession(db, conversation, feed, None, emit)

        confirmed = await room.send("Hello")

        pending, done = frames
        assert pending["type"] == "message_pending"
        assert pending["message"]["text"] == "Hello"
        assert pending["message"]["is_mine"] is True
        assert done["type"] == "message_confirmed"
        assert done["temp_id"] == pending["message"]["id"]
        assert done["message"]["id"] == confirmed.id
        assert [e.id for e in room.stream.entries] == [confirmed.id]
        assert room.stream.entries[0].pending is False

    async def test_failed_persist_rolls_back(self, db, pair, feed, emit, frames):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        room = ChatRoomSession(db, conversation, feed, None, emit)
        await room.send("first", temp_id="temp-1")
        room.stream.rollback(room.stream.entries[0].id)
        frames.clear()

        # Same token again violates the per-sender uniqueness
        await room.send("second", temp_id="temp-1")

        assert [f["type"] for f in frames] == ["message_pending", "message_failed"]
        assert frames[1]["notice"]["title"] == "Database Error"
        assert len(room.stream) == 0

    async def test_rejected_attachment_never_uploads(self, db, pair):
        teacher, student = pair
        conversation = await open_conversation(db, teacher, 7, student.id)
        storage = RecordingStorage()

        with pytest.raises(ValidationError) as exc:
            await ChatService(db, storage=storage).upload_attachment(
                conversation, Attachment("a.exe", "application/x-msdownload", b"MZ")
            )

        assert exc.value.detail["error"] == "Invalid file type"
        assert storage.uploads == []

    async def test_uploaded_file_is_sent_by_url(self, db, pair, feed, emit, frames):
        _, student = pair
        room = ChatRoomSession(db, await open_conversation(db, student, 7), feed, None, emit)

        await room.handle_frame({"type": "send_message", "file_url": "https://files.example/chat_files/a.pdf"})

        assert [f["type"] for f in frames] == ["message_pending", "message_confirmed"]
        assert frames[1]["message"]["file_url"] == "https://files.example/chat_files/a.pdf"
        message = await db.scalar(select(Message))
        assert message.content == ""
        assert message.file_url == "https://files.example/chat_files/a.pdf"

    async def test_blank_input_is_a_no_op(self, db, pair, feed, emit, frames):
        _, student = pair
        room = ChatRoomSession(db, await open_conversation(db, student, 7), feed, None, emit)

        assert await room.send("   ") is None
        assert frames == []

    async def test_unknown_frame_type(self, db, pair, feed, emit, frames):
        _, student = pair
        room = ChatRoomSession(db, await open_conversation(db, student, 7), feed, None, emit)

        await room.handle_frame({"type": "typing"})
        assert frames == [{"type": "error", "message": "Unknown message type: typing"}]

    async def test_malformed_end_session_frame(self, db, pair, feed, emit, frames):
        _, student = pair
        room = ChatRoomSession(db, await open_conversation(db, student, 7), feed, None, emit)

        await room.handle_frame({"type": "end_session", "session_id": "not-a-uuid"})
        assert frames[0]["type"] == "notice"
        assert frames[0]["title"] == "Invalid request"


class TestChatHttp:

    async def test_history_endpoint(self, client, db, pair):
        teacher, student = pair
        await ChatService(db).send_message(await open_conversation(db, student, 7), "question")

        response = await client.get(
            "/api/v1/chat/7/messages", params={"student": str(student.id)}, headers=auth_headers(teacher)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total_messages"] == 1
        assert body["messages"][0]["text"] == "question"
        assert body["messages"][0]["is_mine"] is False
        assert body["conversation"]["viewer_role"] == "teacher"

    async def test_send_with_attachment(self, client, db, pair, feed):
        _, student = pair
        subscription = await feed.subscribe(7)

        response = await client.post(
            "/api/v1/chat/7/messages",
            data={"text": "homework", "client_token": "temp-9"},
            files={"file": ("page.png", b"\x89PNG", "image/png")},
            headers=auth_headers(student),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["content"] == "homework"
        assert "/media/chat_files/" in body["file_url"]
        assert subscription.queue.get_nowait().client_token == "temp-9"

    async def test_send_rejects_bad_attachment(self, client, db, pair):
        _, student = pair

        response = await client.post(
            "/api/v1/chat/7/messages",
            data={"text": "zip"},
            files={"file": ("a.zip", b"PK", "application/zip")},
            headers=auth_headers(student),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "Invalid file type"
        assert await db.scalar(select(func.count(Message.id))) == 0
