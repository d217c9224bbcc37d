"""
Authentication utilities for JWT validation.

Tokens are HS256 JWTs issued by the identity provider; ``sub`` is the profile
id. The resolved profile is handed to handlers explicitly as a ``Viewer``.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID
import logging

from fastapi import Depends, Header
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from .clock import utcnow
from .config import settings
from .database import get_db
from .exceptions import AuthenticationRequired
from ..models.profile import Profile, UserType
from ..models.message import SenderRole
from ..models.status import VerificationStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewer:
    id: UUID
    user_type: UserType
    first_name: str
    last_name: str
    email: str
    tutor_id: Optional[int] = None
    verification_status: Optional[VerificationStatus] = None

    @classmethod
    def from_profile(cls, profile: Profile) -> "Viewer":
        return cls(
            id=profile.id,
            user_type=UserType(profile.user_type),
            first_name=profile.first_name,
            last_name=profile.last_name or "",
            email=profile.email,
            tutor_id=profile.tutor_id,
            verification_status=profile.verification_status,
        )

    @property
    def role(self) -> Optional[SenderRole]:
        """Chat role, or None for staff accounts."""
        if self.user_type == UserType.TEACHER:
            return SenderRole.TEACHER
        if self.user_type == UserType.STUDENT:
            return SenderRole.STUDENT
        return None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_reviewer(self) -> bool:
        return self.user_type in (UserType.ADMIN, UserType.VERIFICATION_MEMBER)


def create_access_token(profile_id: UUID, expires_in: timedelta = timedelta(hours=1)) -> str:
    claims = {
        "sub": str(profile_id),
        "aud": "authenticated",
        "exp": utcnow() + expires_in,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> UUID:
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
        return UUID(claims["sub"])
    except (JWTError, KeyError, ValueError) as e:
        logger.info(f"Rejected access token: {e}")
        raise AuthenticationRequired("Your session has expired, please log in again")


async def load_viewer(db: AsyncSession, token: Optional[str]) -> Viewer:
    if not token:
        raise AuthenticationRequired()
    profile = await db.get(Profile, decode_access_token(token))
    if profile is None or profile.is_deleted:
        raise AuthenticationRequired("User profile not found")
    return Viewer.from_profile(profile)


async def get_current_viewer(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> Viewer:
    """Validate the bearer token and return the viewer's profile"""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationRequired()
    return await load_viewer(db, authorization[len("Bearer "):])
