"""
Tests for teacher demo uploads and verification review.
"""
import pytest

from tutorhub.core.auth import Viewer
from tutorhub.core.exceptions import AccessDenied, InvalidTransition, ValidationError
from tutorhub.models import UserType, VerificationStatus
from tutorhub.models.status import can_transition
from tutorhub.services.storage import Attachment
from tutorhub.services.verification_service import VerificationService
from tests.conftest import auth_headers, make_profile, make_teacher

DEMO = Attachment("demo.mp4", "video/mp4", b"\x00\x00\x00\x18ftypmp42")


@pytest.fixture
async def newcomer(db):
    return await make_teacher(db, tutor_id=11, verification_status=VerificationStatus.WAITING_DEMO)


@pytest.fixture
async def reviewer(db):
    return await make_profile(db, UserType.VERIFICATION_MEMBER)


class TestTransitions:

    @pytest.mark.parametrize("current,target,allowed", [
        (VerificationStatus.WAITING_DEMO, VerificationStatus.PENDING_VERIFICATION, True),
        (VerificationStatus.PENDING_VERIFICATION, VerificationStatus.APPROVED, True),
        (VerificationStatus.PENDING_VERIFICATION, VerificationStatus.REJECTED, True),
        (VerificationStatus.REJECTED, VerificationStatus.PENDING_VERIFICATION, True),
        (VerificationStatus.WAITING_DEMO, VerificationStatus.APPROVED, False),
        (VerificationStatus.APPROVED, VerificationStatus.PENDING_VERIFICATION, False),
    ])
    def test_table(self, current, target, allowed):
        assert can_transition(current, target) is allowed


class TestDemoUpload:

    async def test_upload_moves_to_pending(self, db, newcomer, storage):
        submission = await VerificationService(db, storage).upload_demo(Viewer.from_profile(newcomer), DEMO)

        assert submission.status == VerificationStatus.PENDING_VERIFICATION
        assert "/media/teacher_demos/" in submission.demo_video_url
        await db.refresh(newcomer)
        assert newcomer.verification_status == VerificationStatus.PENDING_VERIFICATION

    async def test_non_video_is_rejected(self, db, newcomer, storage):
        with pytest.raises(ValidationError) as exc:
            await VerificationService(db, storage).upload_demo(
                Viewer.from_profile(newcomer), Attachment("cv.pdf", "application/pdf", b"%PDF")
            )
        assert exc.value.detail["error"] == "Invalid file type"

    async def test_students_cannot_upload(self, db, storage):
        student = await make_profile(db)

        with pytest.raises(AccessDenied):
            await VerificationService(db, storage).upload_demo(Viewer.from_profile(student), DEMO)

    async def test_approved_teacher_cannot_resubmit(self, db, storage):
        teacher = await make_teacher(db, tutor_id=12)

        with pytest.raises(InvalidTransition):
            await VerificationService(db, storage).upload_demo(Viewer.from_profile(teacher), DEMO)


class TestReview:

    async def test_approve(self, db, newcomer, reviewer, storage):
        service = VerificationService(db, storage)
        await service.upload_demo(Viewer.from_profile(newcomer), DEMO)

        teacher = await service.review(Viewer.from_profile(reviewer), newcomer.id, approve=True, notes="Great demo")

        assert teacher.verification_status == VerificationStatus.APPROVED
        latest = await service.latest_submission(newcomer.id)
        assert latest.status == VerificationStatus.APPROVED
        assert latest.admin_notes == "Great demo"

    async def test_review_requires_pending(self, db, newcomer, reviewer):
        with pytest.raises(InvalidTransition):
            await VerificationService(db).review(Viewer.from_profile(reviewer), newcomer.id, approve=True)

    async def test_only_reviewers_review(self, db, newcomer):
        with pytest.raises(AccessDenied):
            await VerificationService(db).review(Viewer.from_profile(newcomer), newcomer.id, approve=True)

    async def test_rejected_teacher_can_resubmit(self, db, newcomer, reviewer, storage):
        service = VerificationService(db, storage)
        await service.upload_demo(Viewer.from_profile(newcomer), DEMO)
        await service.review(Viewer.from_profile(reviewer), newcomer.id, approve=False)

        await service.upload_demo(Viewer.from_profile(newcomer), DEMO)

        assert [t.id for t in await service.pending_teachers()] == [newcomer.id]


class TestVerificationHttp:

    async def test_upload_review_and_stats(self, client, newcomer, reviewer):
        upload = await client.post(
            "/api/v1/verification/demo",
            files={"file": ("demo.mp4", DEMO.data, "video/mp4")},
            headers=auth_headers(newcomer),
        )
        assert upload.status_code == 201

        pending = await client.get("/api/v1/verification/pending", headers=auth_headers(reviewer))
        assert [t["id"] for t in pending.json()] == [str(newcomer.id)]

        review = await client.post(
            f"/api/v1/verification/{newcomer.id}/review",
            json={"approve": False, "notes": "Audio missing"},
            headers=auth_headers(reviewer),
        )
        assert review.json()["verification_status"] == "rejected"

        stats = await client.get("/api/v1/verification/stats", headers=auth_headers(reviewer))
        assert stats.json() == {"total": 1, "pending": 0, "approved": 0, "rejected": 1, "waiting": 0}

    async def test_stats_are_for_reviewers(self, client, newcomer):
        response = await client.get("/api/v1/verification/stats", headers=auth_headers(newcomer))
        assert response.status_code == 403
