import secrets
import uuid
from datetime import timedelta
from typing import Callable, Optional
from db.base import AccountStore, DuplicateKeyError, OtpStore
from core.exceptions import Conflict, InvalidCredential, NotFound
from models.account import AccountSettings
from settings.config import Settings
from utils.clock import utc_now
from utils.hash import hash_password, verify_password
from utils.jwt_handler import create_access_token
from utils.logger import get_logger

logger = get_logger("AUTH_SERVICE")

# user_type from the send-otp request -> role carried by the session
USER_TYPE_ROLES = {
    "customer": "customer",
    "restaurant": "owner",
    "owner": "owner",
    "staff": "staff",
}
RESTAURANT_ROLES = ("owner", "staff")


def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def new_account(restaurant_name: str, phone_number: str, role: str = "owner", email: Optional[str] = None, password: Optional[str] = None) -> dict:
    now = utc_now()
    return {
        "id": uuid.uuid4().hex,
        "restaurant_name": restaurant_name,
        "phone_number": phone_number,
        "email": email.lower() if email else None,
        "password": hash_password(password) if password else None,
        "role": role,
        "is_active": True,
        "whatsapp_enabled": True,
        "settings": AccountSettings().model_dump(),
        "last_login": now,
        "created_at": now,
        "updated_at": now,
    }


def public_account(account: dict) -> dict:
    """Account without the password hash."""
    return {k: v for k, v in account.items() if k != "password"}


class AuthService:
    def __init__(self, accounts: AccountStore, otp_store: OtpStore, settings: Settings, clock: Callable = utc_now):
        self.accounts = accounts
        self.otp_store = otp_store
        self.settings = settings
        self.clock = clock

    def issue_token(self, principal: dict) -> str:
        return create_access_token(
            principal["id"],
            self.settings,
            claims={
                "role": principal["role"],
                "phone": principal.get("phone_number"),
                "restaurant_name": principal.get("restaurant_name"),
                "name": principal.get("name"),
            },
        )

    def request_code(self, phone_number: str, restaurant_name: Optional[str] = None, user_type: str = "customer") -> str:
        """Store a fresh 6-digit code for the phone number and return it."""
        otp = generate_otp()
        purged = self.otp_store.purge_expired(self.clock())
        if purged:
            logger.debug(f"Purged {purged} expired OTP records")
        self.otp_store.put(phone_number, {
            "code": otp,
            "expires_at": self.clock() + timedelta(minutes=self.settings.OTP_TTL_MINUTES),
            "restaurant_name": restaurant_name or f"Restaurant {phone_number[-4:]}",
            "role": USER_TYPE_ROLES.get(user_type, "customer"),
        })
        # no SMS channel is wired up, the code only goes back to the caller
        logger.info(f"OTP issued for {phone_number}, valid {self.settings.OTP_TTL_MINUTES} minutes")
        return otp

    async def verify_code(self, phone_number: str, otp: str) -> dict:
        """
        Check the code, consume it, and log the user in.
        Returns {"token": ..., "user": principal dict}.
        """
        record = self.otp_store.get(phone_number)
        if record is not None and self.clock() > record["expires_at"]:
            self.otp_store.pop(phone_number)
            logger.warning(f"Expired OTP used for {phone_number}")
            raise InvalidCredential("Invalid or expired OTP.")
        # bytes, compare_digest rejects non-ASCII str
        if record is None or not secrets.compare_digest(record["code"].encode(), str(otp).encode()):
            logger.warning(f"OTP mismatch for {phone_number}")
            raise InvalidCredential("Invalid or expired OTP.")
        self.otp_store.pop(phone_number)

        role = record["role"]
        if role in RESTAURANT_ROLES:
            principal = await self._restaurant_login(phone_number, record["restaurant_name"], role)
        else:
            principal = {
                "id": f"user_{int(self.clock().timestamp() * 1000)}",
                "phone_number": phone_number,
                "name": f"Customer {phone_number[-4:]}",
                "restaurant_name": None,
                "role": "customer",
                "settings": {},
            }
        logger.info(f"OTP login successful for {phone_number} as {principal['role']}")
        return {"token": self.issue_token(principal), "user": principal}

    async def _restaurant_login(self, phone_number: str, restaurant_name: str, role: str) -> dict:
        account = await self.accounts.get_by_phone(phone_number)
        if account is None:
            account = await self.accounts.insert(new_account(restaurant_name, phone_number, role=role))
            logger.info(f"Account {account['id']} created on first OTP login")
        else:
            account = await self.accounts.update(account["id"], {"last_login": self.clock()})
        return {
            "id": account["id"],
            "phone_number": account["phone_number"],
            "restaurant_name": account["restaurant_name"],
            "name": None,
            "role": account["role"],
            "settings": account.get("settings") or {},
        }

    async def register(self, restaurant_name: str, phone_number: str, email: Optional[str] = None, password: Optional[str] = None) -> dict:
        logger.info(f"Registration request received for phone: {phone_number}")
        if await self.accounts.get_by_phone(phone_number):
            raise Conflict("User with this phone number already exists.")
        try:
            account = await self.accounts.insert(new_account(restaurant_name, phone_number, email=email, password=password))
        except DuplicateKeyError:
            # lost a race with a concurrent registration
            raise Conflict("User with this phone number already exists.")
        logger.info(f"Account registered with id: {account['id']}")
        return {"token": self.issue_token(account), "user": public_account(account)}

    async def login(self, phone_number: str, password: str) -> dict:
        account = await self.accounts.get_by_phone(phone_number)
        if account is None or not verify_password(password, account.get("password")):
            logger.warning(f"Password login failed for {phone_number}")
            raise InvalidCredential("Invalid credentials.")
        account = await self.accounts.update(account["id"], {"last_login": self.clock()})
        logger.info(f"Password login successful: {phone_number}")
        return {"token": self.issue_token(account), "user": public_account(account)}

    async def get_profile(self, principal) -> dict:
        account = await self.accounts.get_by_id(principal.id)
        if account:
            return public_account(account)
        # OTP customers have no stored account
        return {
            "id": principal.id,
            "name": principal.name,
            "restaurant_name": principal.restaurant_name,
            "phone_number": principal.phone_number,
            "role": principal.role,
            "settings": {},
        }

    async def update_profile(self, principal, restaurant_name: Optional[str] = None, email: Optional[str] = None, settings: Optional[dict] = None) -> dict:
        account = await self.accounts.get_by_id(principal.id)
        if account is None:
            raise NotFound("Account not found.")
        fields = {"updated_at": self.clock()}
        if restaurant_name:
            fields["restaurant_name"] = restaurant_name
        if email:
            fields["email"] = email.lower()
        if settings:
            merged = AccountSettings.model_validate(account.get("settings") or {}).model_dump()
            merged.update(AccountSettings.model_validate(settings).model_dump(exclude_unset=True))
            fields["settings"] = merged
        account = await self.accounts.update(principal.id, fields)
        logger.info(f"Profile updated for account {principal.id}")
        return public_account(account)
