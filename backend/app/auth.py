"""
QA Release Tracker - Session Tokens
Signed JWT issuance/validation, session cookie handling and auth dependencies
"""
import hmac
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, Response, status
from jose import JWTError, jwt

from .config import Settings, get_settings
from .errors import TokenExpired, TokenInvalid, Unauthenticated
from .models.domain import Identity

ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """
    Stateless session tokens.

    The token is the whole session: no server-side store, no revocation
    list, no silent refresh. Expiry is absolute with zero clock skew.
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow):
        self.settings = settings
        self._clock = clock

    @property
    def lifetime(self) -> timedelta:
        return timedelta(hours=self.settings.token_expire_hours)

    def issue(self, identity: Identity) -> IssuedToken:
        """Create a signed token for an authorized identity."""
        now = self._clock().replace(microsecond=0)
        expires_at = now + self.lifetime
        token_id = str(uuid.uuid4())
        claims = {
            "sub": str(identity.emp_code),
            "name": identity.name,
            "given_name": identity.name,
            "jti": token_id,
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self.settings.jwt_secret_key, algorithm=ALGORITHM)
        return IssuedToken(token=token, token_id=token_id, issued_at=now, expires_at=expires_at)

    def validate(self, token: str) -> Identity:
        """
        Check signature, issuer, audience and expiry.

        Raises TokenExpired or TokenInvalid.
        """
        if not token:
            raise TokenInvalid()
        try:
            claims = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[ALGORITHM],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                # Expiry is checked below against the injected clock.
                # No require_exp: jose turns verify_exp back on when it is set.
                options={
                    "verify_exp": False,
                    "require_iss": True,
                    "require_aud": True,
                    "require_sub": True,
                    "leeway": 0,
                },
            )
        except JWTError as exc:
            raise TokenInvalid() from exc

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenInvalid()
        if self._clock().timestamp() >= exp:
            raise TokenExpired()

        name = claims.get("given_name") or claims.get("name") or claims.get("unique_name")
        if not name:
            raise Unauthenticated("User not identified")

        return Identity(emp_code=str(claims["sub"]), name=name, token_id=claims.get("jti"))


# =============================================================================
# SESSION COOKIE
# =============================================================================

def set_session_cookie(response: Response, issued: IssuedToken, settings: Settings) -> None:
    """HttpOnly, Secure, cross-site cookie expiring with the token."""
    max_age = int((issued.expires_at - issued.issued_at).total_seconds())
    response.set_cookie(
        key=settings.cookie_name,
        value=issued.token,
        max_age=max_age,
        expires=issued.expires_at,
        path="/",
        domain=settings.cookie_domain,
        secure=True,
        httponly=True,
        samesite="none",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        domain=settings.cookie_domain,
        secure=True,
        httponly=True,
        samesite="none",
    )


def _token_from_request(request: Request, settings: Settings) -> Optional[str]:
    token = request.cookies.get(settings.cookie_name)
    if token:
        return token
    # Bearer header fallback for API tooling
    authorization = request.headers.get("Authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


async def get_current_identity(
    request: Request,
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
) -> Identity:
    """
    Dependency to get the current authenticated employee.
    Reads the session cookie (or bearer header) and validates the token.
    """
    token = _token_from_request(request, settings)
    if not token:
        raise Unauthenticated()
    return tokens.validate(token)


async def require_operator(
    x_operator_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> bool:
    """
    Dependency for operator-only diagnostics.
    Disabled entirely when no OPERATOR_API_KEY is configured.
    """
    expected = settings.operator_api_key
    if not expected or not x_operator_key or not hmac.compare_digest(x_operator_key, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator access required"
        )
    return True
