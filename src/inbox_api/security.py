from jose import JWTError, jwt

from inbox_core.settings import get_settings


def decode_access_token(token: str) -> dict | None:
    """Verify a bearer token issued by the auth service. Returns None if invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except JWTError:
        return None
