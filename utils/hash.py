from passlib.context import CryptContext
from utils.logger import get_logger
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

logger = get_logger("HASH_UTILS")

def hash_password(password: str) -> str:
    logger.debug("Password received for hashing")
    password_str = str(password)
    # bcrypt only looks at the first 72 bytes
    if len(password_str.encode('utf-8')) > 72:
        password_str = password_str.encode('utf-8')[:72].decode('utf-8', errors='ignore')
    return pwd_context.hash(password_str)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    password_str = str(plain_password)
    if len(password_str.encode('utf-8')) > 72:
        password_str = password_str.encode('utf-8')[:72].decode('utf-8', errors='ignore')
    return pwd_context.verify(password_str, hashed_password)
