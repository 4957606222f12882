"""JWT verification for bearer credentials issued by the identity provider."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from app.config import settings


def decode_token(token: str) -> dict:
    """Decode and verify a JWT token.

    Args:
        token: Encoded JWT string.

    Returns:
        Decoded payload dictionary.

    Raises:
        jose.JWTError: If the token is invalid, expired, or malformed.
    """
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Mint an access token signed with the shared secret.

    Production tokens come from the identity provider; this exists for local
    tooling and the test suite.

    Args:
        data: Payload data. Must include ``sub`` (profile UUID as string).
        expires_delta: Custom expiration duration. Defaults to
            ``settings.jwt_access_token_expire_minutes`` minutes.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    to_encode.update({"exp": expire, "iat": now})
    to_encode.setdefault("type", "access")
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
