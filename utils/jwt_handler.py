from datetime import timedelta
from jose import jwt, JWTError, ExpiredSignatureError
from settings.config import Settings
from utils.clock import utc_now
from utils.logger import get_logger

logger = get_logger("JWT_HANDLER")


class TokenExpired(Exception):
    pass


class TokenInvalid(Exception):
    pass


def create_access_token(subject: str, settings: Settings, claims: dict | None = None) -> str:
    """
    Creates a signed session token for `subject`, valid ACCESS_TOKEN_EXPIRE_DAYS.
    """
    to_encode = dict(claims or {})
    now = utc_now()
    expire = now + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode.update({"sub": str(subject), "exp": expire, "iat": now})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    logger.info(f"Access token created for {subject}, expires at {expire}")
    return encoded_jwt

def decode_access_token(token: str, settings: Settings) -> dict:
    """
    Decode JWT token and return payload.
    Raises TokenExpired or TokenInvalid.
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpired("Token expired.")
    except JWTError:
        raise TokenInvalid("Invalid token.")
