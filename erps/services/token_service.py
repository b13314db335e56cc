# erps/services/token_service.py
"""
Token Service: verification tokens (installer / inspector) and activation tokens (customer).

Rules:
  - tokens are 64 hex chars from secrets, stored under a unique constraint
  - issuing a token for (record_id, purpose) deactivates the previous live one
  - resolve() is exact-match; expiry is strict: expired only when now > expires_at
  - superseded tokens carry revoked_at, so they stay invalid after they would have expired
  - consume() is check-then-set, so the second of two concurrent verifications loses
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from erps.config import settings
from erps.models.verification_token import VerificationToken
from erps.services.lifecycle_rules import TokenPurpose
from erps.utils.errors import ActivationLinkError, TokenExpiredError, TokenInvalidError
from erps.utils.logger import get_logger

logger = get_logger(__name__)


def ttl_for(purpose: TokenPurpose) -> timedelta:
    if purpose == TokenPurpose.CUSTOMER_ACTIVATION:
        return timedelta(hours=settings.ACTIVATION_TOKEN_TTL_HOURS)
    return timedelta(hours=settings.VERIFICATION_TOKEN_TTL_HOURS)


def _invalid(purpose: Optional[TokenPurpose], detail: str) -> TokenInvalidError:
    if purpose == TokenPurpose.CUSTOMER_ACTIVATION:
        return ActivationLinkError("Invalid or expired activation link", [detail])
    return TokenInvalidError("Invalid or already used link", [detail])


class TokenService:
    def __init__(self, db: Session):
        self.db = db

    def _revoke(self, record_id: str, purpose: TokenPurpose, now: datetime) -> int:
        return (
            self.db.query(VerificationToken)
            .filter(
                VerificationToken.record_id == record_id,
                VerificationToken.purpose == purpose.value,
                VerificationToken.is_active == True,  # noqa: E712
            )
            .update({"is_active": False, "revoked_at": now}, synchronize_session=False)
        )

    def issue(self, record_id: str, purpose: TokenPurpose, now: Optional[datetime] = None) -> VerificationToken:
        """Mint a token, superseding any live token for the same record and purpose. Does not commit."""
        now = now or datetime.utcnow()
        superseded = self._revoke(record_id, purpose, now)
        if superseded:
            logger.info(f"[TOKEN] Superseded {superseded} {purpose.value} token(s) for {record_id}")

        token = VerificationToken(
            token=secrets.token_hex(32),
            record_id=record_id,
            purpose=purpose.value,
            expires_at=now + ttl_for(purpose),
            is_active=True,
            reminders_sent=0,
            created_at=now,
        )
        self.db.add(token)
        self.db.flush()
        return token

    def resolve(self, token: str, purpose: TokenPurpose, now: Optional[datetime] = None) -> VerificationToken:
        """
        Return the live token row or raise TOKEN_INVALID / TOKEN_EXPIRED.

        Used and superseded tokens are invalid. A token past expires_at is expired,
        including one the cleanup job has already deactivated.
        """
        now = now or datetime.utcnow()
        row = None
        if token:
            row = self.db.query(VerificationToken).filter(VerificationToken.token == token).first()
        if row is None or row.purpose != purpose.value:
            raise _invalid(purpose, "Token not recognised")
        if row.used_at is not None or row.revoked_at is not None:
            raise _invalid(purpose, "Token was already used or replaced")
        if now > row.expires_at:
            raise TokenExpiredError(
                "This link has expired",
                [f"Token expired at {row.expires_at.isoformat()}"],
            )
        if not row.is_active:
            raise _invalid(purpose, "Token is no longer active")
        return row

    def consume(self, token: str, now: Optional[datetime] = None, purpose: Optional[TokenPurpose] = None):
        """Deactivate a live token. Losing a concurrent race raises TOKEN_INVALID. Does not commit."""
        now = now or datetime.utcnow()
        matched = (
            self.db.query(VerificationToken)
            .filter(VerificationToken.token == token, VerificationToken.is_active == True)  # noqa: E712
            .update({"is_active": False, "used_at": now}, synchronize_session=False)
        )
        if matched != 1:
            raise _invalid(purpose, "Token was already used")

    def invalidate_for_record(self, record_id: str, purpose: TokenPurpose) -> int:
        return self._revoke(record_id, purpose, datetime.utcnow())

    def active_token(self, record_id: str, purpose: TokenPurpose) -> Optional[VerificationToken]:
        return (
            self.db.query(VerificationToken)
            .filter(
                VerificationToken.record_id == record_id,
                VerificationToken.purpose == purpose.value,
                VerificationToken.is_active == True,  # noqa: E712
            )
            .order_by(VerificationToken.created_at.desc())
            .first()
        )

    def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Deactivate every live token past its expiry. Expired rows keep resolving as TOKEN_EXPIRED. Commits."""
        now = now or datetime.utcnow()
        count = (
            self.db.query(VerificationToken)
            .filter(VerificationToken.is_active == True, VerificationToken.expires_at < now)  # noqa: E712
            .update({"is_active": False}, synchronize_session=False)
        )
        self.db.commit()
        if count:
            logger.info(f"[TOKEN] Deactivated {count} expired token(s)")
        return count
