import copy
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from db.base import AccountStore, DuplicateKeyError, OrderStore, OtpStore, QRCodeStore
from utils.logger import get_logger

logger = get_logger("MEMORY_STORE")

# No locking: concurrent writers to the same key are last-writer-wins.


def _sort_value(value):
    # None sorts before everything else
    return (value is not None, value)


class MemoryAccountStore(AccountStore):
    def __init__(self):
        self._accounts: Dict[str, dict] = {}

    async def insert(self, doc: dict) -> dict:
        if any(a["phone_number"] == doc["phone_number"] for a in self._accounts.values()):
            raise DuplicateKeyError(f"phone_number {doc['phone_number']}")
        self._accounts[doc["id"]] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    async def get_by_id(self, account_id: str) -> Optional[dict]:
        doc = self._accounts.get(account_id)
        return copy.deepcopy(doc) if doc else None

    async def get_by_phone(self, phone_number: str) -> Optional[dict]:
        for doc in self._accounts.values():
            if doc["phone_number"] == phone_number:
                return copy.deepcopy(doc)
        return None

    async def update(self, account_id: str, fields: dict) -> Optional[dict]:
        doc = self._accounts.get(account_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(fields))
        return copy.deepcopy(doc)


class MemoryOrderStore(OrderStore):
    def __init__(self):
        self._orders: Dict[str, dict] = {}

    async def insert(self, doc: dict) -> dict:
        if await self.order_id_exists(doc["order_id"]):
            raise DuplicateKeyError(f"order_id {doc['order_id']}")
        self._orders[doc["id"]] = copy.deepcopy(doc)
        logger.debug(f"Stored order {doc['order_id']} ({len(self._orders)} in memory)")
        return copy.deepcopy(doc)

    async def order_id_exists(self, order_id: str) -> bool:
        return any(o["order_id"] == order_id for o in self._orders.values())

    def _locate(self, restaurant_id: str, order_id: str) -> Optional[dict]:
        for doc in self._orders.values():
            if doc["order_id"] == order_id and doc["restaurant_id"] == restaurant_id:
                return doc
        return None

    async def get(self, restaurant_id: str, order_id: str) -> Optional[dict]:
        doc = self._locate(restaurant_id, order_id)
        return copy.deepcopy(doc) if doc else None

    def _matching(self, restaurant_id, status=None, order_ids=None, since=None) -> List[dict]:
        wanted = set(order_ids) if order_ids is not None else None
        result = []
        for doc in self._orders.values():
            if doc["restaurant_id"] != restaurant_id:
                continue
            if status and doc["status"] != status:
                continue
            if wanted is not None and doc["order_id"] not in wanted:
                continue
            if since and doc["created_at"] < since:
                continue
            result.append(doc)
        return result

    async def find(
        self,
        restaurant_id: str,
        status: Optional[str] = None,
        order_ids: Optional[List[str]] = None,
        since: Optional[datetime] = None,
    ) -> List[dict]:
        return [copy.deepcopy(d) for d in self._matching(restaurant_id, status, order_ids, since)]

    async def page(self, restaurant_id, status, sort_field, descending, skip, limit) -> Tuple[List[dict], int]:
        matching = self._matching(restaurant_id, status)
        ordered = sorted(matching, key=lambda d: _sort_value(d.get(sort_field)), reverse=descending)
        return [copy.deepcopy(d) for d in ordered[skip:skip + limit]], len(matching)

    async def update_fields(self, restaurant_id: str, order_id: str, fields: dict) -> Optional[dict]:
        doc = self._locate(restaurant_id, order_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(fields))
        return copy.deepcopy(doc)

    async def push_notification(self, restaurant_id: str, order_id: str, entry: dict) -> Optional[dict]:
        doc = self._locate(restaurant_id, order_id)
        if doc is None:
            return None
        doc.setdefault("notification_history", []).append(copy.deepcopy(entry))
        return copy.deepcopy(doc)

    async def delete(self, restaurant_id: str, order_id: str) -> bool:
        for key, doc in list(self._orders.items()):
            if doc["order_id"] == order_id and doc["restaurant_id"] == restaurant_id:
                del self._orders[key]
                return True
        return False


class MemoryQRCodeStore(QRCodeStore):
    def __init__(self):
        self._codes: Dict[str, dict] = {}

    async def insert(self, doc: dict) -> dict:
        if await self.code_exists(doc["code"]):
            raise DuplicateKeyError(f"code {doc['code']}")
        self._codes[doc["id"]] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    async def code_exists(self, code: str) -> bool:
        return any(q["code"] == code for q in self._codes.values())

    async def get_by_code(self, code: str) -> Optional[dict]:
        for doc in self._codes.values():
            if doc["code"] == code:
                return copy.deepcopy(doc)
        return None

    async def get(self, restaurant_id: str, qr_id: str) -> Optional[dict]:
        doc = self._codes.get(qr_id)
        if doc is None or doc["restaurant_id"] != restaurant_id:
            return None
        return copy.deepcopy(doc)

    async def find(self, restaurant_id: str) -> List[dict]:
        docs = [d for d in self._codes.values() if d["restaurant_id"] == restaurant_id]
        docs.sort(key=lambda d: d["created_at"], reverse=True)
        return [copy.deepcopy(d) for d in docs]

    async def update_fields(self, restaurant_id: str, qr_id: str, fields: dict) -> Optional[dict]:
        doc = self._codes.get(qr_id)
        if doc is None or doc["restaurant_id"] != restaurant_id:
            return None
        doc.update(copy.deepcopy(fields))
        return copy.deepcopy(doc)

    async def increment(self, code: str, counter: str, fields: dict) -> Optional[dict]:
        for doc in self._codes.values():
            if doc["code"] == code and doc.get("is_active"):
                doc[counter] = doc.get(counter, 0) + 1
                doc.update(copy.deepcopy(fields))
                return copy.deepcopy(doc)
        return None

    async def delete(self, restaurant_id: str, qr_id: str) -> bool:
        doc = self._codes.get(qr_id)
        if doc is None or doc["restaurant_id"] != restaurant_id:
            return False
        del self._codes[qr_id]
        return True


class MemoryOtpStore(OtpStore):
    """phone number -> {code, expires_at, restaurant_name, role}"""

    def __init__(self):
        self._records: Dict[str, dict] = {}

    def put(self, phone_number: str, record: dict) -> None:
        self._records[phone_number] = dict(record)

    def get(self, phone_number: str) -> Optional[dict]:
        record = self._records.get(phone_number)
        return dict(record) if record else None

    def pop(self, phone_number: str) -> Optional[dict]:
        return self._records.pop(phone_number, None)

    def purge_expired(self, now: datetime) -> int:
        expired = [phone for phone, record in self._records.items() if record["expires_at"] < now]
        for phone in expired:
            del self._records[phone]
        return len(expired)

    def __len__(self):
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
