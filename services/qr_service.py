import base64
import io
import secrets
import string
import uuid
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import urlencode

import qrcode

from db.base import AccountStore, DuplicateKeyError, QRCodeStore
from core.exceptions import NotFound, ValidationError
from models.qr_code import QRCodeCreate, QRCodeSettings, QRCodeUpdate
from utils.clock import utc_now
from utils.logger import get_logger
from utils.phone import normalize_phone_number

logger = get_logger("QR_Service")

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
QR_MARGIN = 2


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def merge_settings(current: Optional[dict], overrides: Optional[dict]) -> dict:
    merged = QRCodeSettings.model_validate(current or {}).model_dump()
    if overrides:
        merged.update(QRCodeSettings.model_validate(overrides).model_dump(exclude_unset=True))
    return merged


def render_qr_png(data: str, size: int = 200) -> bytes:
    qr = qrcode.QRCode(border=QR_MARGIN, error_correction=qrcode.constants.ERROR_CORRECT_M)
    qr.add_data(data)
    qr.make(fit=True)
    # pick the box size that gets closest to the requested width
    modules = qr.modules_count + 2 * QR_MARGIN
    qr.box_size = max(1, round(size / modules))
    img = qr.make_image(fill_color="#000000", back_color="#FFFFFF")
    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()


class QRCodeService:
    def __init__(
        self,
        qr_codes: QRCodeStore,
        accounts: AccountStore,
        frontend_url: str,
        default_country_code: str = "1",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.qr_codes = qr_codes
        self.accounts = accounts
        self.frontend_url = frontend_url.rstrip("/")
        self.default_country_code = default_country_code
        self.clock = clock

    async def generate_unique_code(self) -> str:
        # 36^8 codes, collisions are rare enough to just retry
        while True:
            code = generate_code()
            if not await self.qr_codes.code_exists(code):
                return code
            logger.debug(f"QR code collision on {code}, retrying")

    def opt_in_url(self, code: str, restaurant_id: str) -> str:
        return f"{self.frontend_url}/optin?{urlencode({'code': code, 'restaurant': restaurant_id})}"

    async def create(self, restaurant_id: str, payload: QRCodeCreate) -> dict:
        if not payload.name.strip():
            raise ValidationError("QR code name is required.")
        now = self.clock()
        while True:
            code = await self.generate_unique_code()
            doc = {
                "id": uuid.uuid4().hex,
                "restaurant_id": restaurant_id,
                "code": code,
                "name": payload.name.strip(),
                "description": payload.description,
                "url": self.opt_in_url(code, restaurant_id),
                "is_active": True,
                "scan_count": 0,
                "opt_in_count": 0,
                "settings": merge_settings(None, payload.settings),
                "last_scanned": None,
                "created_at": now,
                "updated_at": now,
            }
            try:
                qr_code = await self.qr_codes.insert(doc)
                break
            except DuplicateKeyError:
                logger.warning(f"QR code {code} taken between check and insert, retrying")
        logger.info(f"QR code {code} created for restaurant {restaurant_id}")
        return qr_code

    async def list_codes(self, restaurant_id: str) -> list:
        return await self.qr_codes.find(restaurant_id)

    async def stats(self, restaurant_id: str) -> dict:
        codes = await self.qr_codes.find(restaurant_id)
        scanned = sorted(
            (c for c in codes if c.get("last_scanned")),
            key=lambda c: c["last_scanned"],
            reverse=True,
        )
        return {
            "stats": {
                "total_codes": len(codes),
                "active_codes": sum(1 for c in codes if c.get("is_active")),
                "total_scans": sum(c.get("scan_count", 0) for c in codes),
                "total_opt_ins": sum(c.get("opt_in_count", 0) for c in codes),
            },
            "recent_scans": scanned[:5],
        }

    async def _active(self, code: str) -> dict:
        qr_code = await self.qr_codes.get_by_code(code)
        if not qr_code or not qr_code.get("is_active"):
            logger.warning(f"QR code {code} not found or inactive")
            raise NotFound("QR code not found or inactive.")
        return qr_code

    async def _count(self, code: str, counter: str, fields: dict) -> dict:
        qr_code = await self.qr_codes.increment(code, counter, fields)
        if qr_code is None:
            logger.warning(f"QR code {code} not found or inactive")
            raise NotFound("QR code not found or inactive.")
        return qr_code

    async def record_scan(self, code: str) -> dict:
        """Public lookup from a customer's scan, counts the scan."""
        qr_code = await self._count(code, "scan_count", {"last_scanned": self.clock()})
        account = await self.accounts.get_by_id(qr_code["restaurant_id"])
        return {
            "id": qr_code["id"],
            "code": qr_code["code"],
            "name": qr_code["name"],
            "description": qr_code.get("description"),
            "restaurant_name": account["restaurant_name"] if account else None,
            "settings": qr_code.get("settings") or {},
        }

    async def record_opt_in(self, code: str, phone_number: str, customer_name: Optional[str] = None) -> dict:
        qr_code = await self._count(code, "opt_in_count", {"updated_at": self.clock()})
        logger.info(f"Opt-in on QR code {code} from {phone_number}")
        return {
            "message": (qr_code.get("settings") or {}).get("message") or QRCodeSettings().message,
            "phoneNumber": normalize_phone_number(phone_number, self.default_country_code),
            "customerName": customer_name,
            "requireConfirmation": (qr_code.get("settings") or {}).get("require_confirmation", False),
        }

    async def render_image(self, code: str, size: int = 200) -> dict:
        qr_code = await self._active(code)
        png = render_qr_png(qr_code["url"], size)
        return {
            "image": "data:image/png;base64," + base64.b64encode(png).decode("ascii"),
            "url": qr_code["url"],
        }

    async def update(self, restaurant_id: str, qr_id: str, payload: QRCodeUpdate) -> dict:
        qr_code = await self.qr_codes.get(restaurant_id, qr_id)
        if not qr_code:
            raise NotFound("QR code not found.")
        changes = payload.model_dump(exclude_unset=True)
        fields = {"updated_at": self.clock()}
        if changes.get("name") is not None:
            fields["name"] = changes["name"]
        if "description" in changes:
            fields["description"] = changes["description"]
        if changes.get("is_active") is not None:
            fields["is_active"] = changes["is_active"]
        if changes.get("settings") is not None:
            fields["settings"] = merge_settings(qr_code.get("settings"), changes["settings"])
        qr_code = await self.qr_codes.update_fields(restaurant_id, qr_id, fields)
        if qr_code is None:
            raise NotFound("QR code not found.")
        logger.info(f"QR code {qr_id} updated: {sorted(changes)}")
        return qr_code

    async def delete(self, restaurant_id: str, qr_id: str):
        if not await self.qr_codes.delete(restaurant_id, qr_id):
            raise NotFound("QR code not found.")
        logger.info(f"QR code {qr_id} deleted")
