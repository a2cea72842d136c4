"""
Password hashing and bearer tokens.

Tokens are HS256 JWTs carrying the user's email as `sub` and the numeric
user id as the `UserId` claim. Image endpoints receive them in the
`X-Token` header.

Validation has two modes:
    - strict: signature, expiry, issuer and audience are verified.
    - parity: the token is only parsed. This mirrors the service this one
      replaces and exists for migration checks; do not run it in production.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

import structlog
from fastapi import Header, Request
from jose import jwt
from jose.exceptions import JOSEError
from passlib.context import CryptContext

from image_api.core.config import ConfigError, Settings
from image_api.core.utils import utcnow

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

USER_ID_CLAIM = "UserId"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (ValueError, TypeError):
        # unknown or corrupt hash format
        return False


class TokenService:
    def __init__(
        self,
        secret: Optional[str],
        issuer: str,
        audience: str,
        algorithm: str = "HS256",
        expire_minutes: int = 60,
        strict: bool = True,
    ):
        self.secret = secret
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.strict = strict

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.access_token_expire_minutes,
            strict=settings.jwt_strict_validation,
        )

    def issue(self, user) -> str:
        """Signed token for an authenticated user, valid for expire_minutes."""
        if not self.secret:
            raise ConfigError("JWT signing secret is not configured.")
        now = utcnow()
        claims = {
            "sub": user.email,
            USER_ID_CLAIM: str(user.user_id),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def validate(self, token: Optional[str], expected_user_id: Optional[int] = None):
        """
        Without expected_user_id: the token's claims, or None if the token is
        missing or malformed. With expected_user_id: True only if the token
        validates and its UserId claim equals that id.
        """
        claims = self._decode(token)
        if expected_user_id is None:
            return claims
        if claims is None:
            return False
        return claim_user_id(claims) == expected_user_id

    def _decode(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        try:
            if not self.strict:
                return jwt.get_unverified_claims(token)
            return jwt.decode(
                token,
                self.secret or "",
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except JOSEError as e:
            logger.info("token.rejected", reason=str(e))
            return None


def claim_user_id(claims: Dict[str, Any]) -> Optional[int]:
    value = claims.get(USER_ID_CLAIM)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


async def token_header(x_token: Optional[str] = Header(default=None, alias="X-Token")) -> Optional[str]:
    return x_token
