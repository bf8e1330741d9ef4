import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import bcrypt
from fastapi import Request, Response
from itsdangerous import BadData, URLSafeTimedSerializer

from config import Settings
from models import UserRole

logger = logging.getLogger(__name__)

COOKIE_NAME = "token"
SECONDS_PER_DAY = 24 * 3600


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    role: UserRole


@dataclass(frozen=True)
class VerifyResult:
    valid: bool
    claims: Optional[TokenClaims] = None


@dataclass(frozen=True)
class AuthResult:
    valid: bool
    user_id: Optional[int] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None


INVALID_AUTH = AuthResult(valid=False)


class TokenService:
    """Issues and checks signed session tokens.

    The signing secret is handed in by the caller so tests and deployments can
    each use their own.
    """

    def __init__(
        self,
        secret: str,
        *,
        max_age_days: int = 7,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_age_secs = max_age_days * SECONDS_PER_DAY
        self.clock = clock
        self._serializer = URLSafeTimedSerializer(secret, salt="session-token")

    def issue(self, claims: TokenClaims) -> str:
        issued_at = int(self.clock())
        payload = {
            "userId": claims.user_id,
            "email": claims.email,
            "role": claims.role.value,
            "iat": issued_at,
            "exp": issued_at + self.max_age_secs,
        }
        return self._serializer.dumps(payload)

    def verify(self, token: Optional[str]) -> VerifyResult:
        if not token:
            return VerifyResult(valid=False)
        try:
            data = self._serializer.loads(token, max_age=self.max_age_secs)
        except BadData as exc:
            logger.info(f"token_rejected: reason={type(exc).__name__}")
            return VerifyResult(valid=False)

        claims = _claims_from_payload(data)
        if claims is None:
            logger.info("token_rejected: reason=malformed_payload")
            return VerifyResult(valid=False)

        if self.clock() > data["exp"]:
            logger.info(f"token_rejected: reason=expired user_id={claims.user_id}")
            return VerifyResult(valid=False)

        return VerifyResult(valid=True, claims=claims)

    def authenticate(self, request: Request) -> AuthResult:
        result = self.verify(token_from_request(request))
        if not result.valid or result.claims is None:
            return INVALID_AUTH
        return AuthResult(
            valid=True,
            user_id=result.claims.user_id,
            email=result.claims.email,
            role=result.claims.role,
        )


def _claims_from_payload(data: Any) -> Optional[TokenClaims]:
    if not isinstance(data, dict):
        return None
    user_id = data.get("userId")
    email = data.get("email")
    exp = data.get("exp")
    if not isinstance(user_id, int) or not isinstance(email, str):
        return None
    if not isinstance(exp, (int, float)):
        return None
    try:
        role = UserRole(data.get("role"))
    except ValueError:
        return None
    return TokenClaims(user_id=user_id, email=email, role=role)


def token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=settings.token_max_age_days * SECONDS_PER_DAY,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME, httponly=True, samesite="lax")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(digest: str, password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), digest.encode("utf-8"))
    except ValueError:
        return False
