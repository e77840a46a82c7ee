# backend/app/services/auth/jwt_handler.py
"""
Bearer token handling for the portfolio API.

The API only consumes tokens: there is no login flow, so tokens come from
scripts/seed_sample_data.py or any issuer sharing JWT_SECRET_KEY. Claims:

    sub    user id, as a decimal string
    email  informational
    type   always "access"
    iat / exp
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.services.exceptions import InvalidCredentialsError, TokenExpiredError

ACCESS_TOKEN_TYPE = "access"


def _decode(token: str, verify: bool = True) -> dict[str, Any]:
    options = None if verify else {"verify_signature": False, "verify_exp": False}
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options=options,
    )


class JWTHandler:
    """Stateless issue/verify helpers; nothing is persisted."""

    @staticmethod
    def create_access_token(
        user_id: int,
        email: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Issue a signed access token.

        A negative `expires_delta` yields a token that is already expired,
        which tests use to exercise the 401 path.
        """
        issued_at = datetime.now(timezone.utc)
        lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)

        claims = {
            "sub": str(user_id),
            "email": email,
            "type": ACCESS_TOKEN_TYPE,
            "iat": issued_at,
            "exp": issued_at + lifetime,
        }
        return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    @staticmethod
    def validate_access_token(token: str) -> dict[str, Any]:
        """
        Verify signature, expiry and claims.

        Raises:
            TokenExpiredError: exp is in the past
            InvalidCredentialsError: bad signature, wrong type or a
                non-numeric subject
        """
        try:
            claims = _decode(token)
        except ExpiredSignatureError:
            raise TokenExpiredError(ACCESS_TOKEN_TYPE)
        except JWTError as e:
            raise InvalidCredentialsError(f"Invalid token: {e}")

        if claims.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidCredentialsError("Invalid token type")
        if not str(claims.get("sub", "")).isdigit():
            raise InvalidCredentialsError("Invalid token subject")

        return claims

    @staticmethod
    def get_token_expiry(token: str) -> datetime | None:
        """Expiry of a token (even an expired or foreign one), or None if unreadable."""
        try:
            exp = _decode(token, verify=False).get("exp")
        except JWTError:
            return None
        return datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
