"""
Store interfaces.

Services only talk to these. `db/memory_store.py` keeps everything in process
memory (demo mode, tests), `db/mongo_store.py` persists to MongoDB. Documents
are plain dicts in snake_case and always carry a string `id`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple


class DuplicateKeyError(Exception):
    """A unique field (order_id, code, phone_number) is already taken."""


class AccountStore(ABC):

    @abstractmethod
    async def insert(self, doc: dict) -> dict:
        pass

    @abstractmethod
    async def get_by_id(self, account_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def get_by_phone(self, phone_number: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def update(self, account_id: str, fields: dict) -> Optional[dict]:
        pass


class OrderStore(ABC):

    @abstractmethod
    async def insert(self, doc: dict) -> dict:
        pass

    @abstractmethod
    async def order_id_exists(self, order_id: str) -> bool:
        """Checked across every restaurant, external ids are global."""
        pass

    @abstractmethod
    async def get(self, restaurant_id: str, order_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def find(
        self,
        restaurant_id: str,
        status: Optional[str] = None,
        order_ids: Optional[List[str]] = None,
        since: Optional[datetime] = None,
    ) -> List[dict]:
        pass

    @abstractmethod
    async def page(
        self,
        restaurant_id: str,
        status: Optional[str],
        sort_field: str,
        descending: bool,
        skip: int,
        limit: int,
    ) -> Tuple[List[dict], int]:
        """Returns (orders on the page, total matching)."""
        pass

    @abstractmethod
    async def update_fields(self, restaurant_id: str, order_id: str, fields: dict) -> Optional[dict]:
        """Set only the given fields. Returns the updated order, None when it is gone."""
        pass

    @abstractmethod
    async def push_notification(self, restaurant_id: str, order_id: str, entry: dict) -> Optional[dict]:
        """Append one entry to notification_history."""
        pass

    @abstractmethod
    async def delete(self, restaurant_id: str, order_id: str) -> bool:
        pass


class QRCodeStore(ABC):

    @abstractmethod
    async def insert(self, doc: dict) -> dict:
        pass

    @abstractmethod
    async def code_exists(self, code: str) -> bool:
        pass

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def get(self, restaurant_id: str, qr_id: str) -> Optional[dict]:
        pass

    @abstractmethod
    async def find(self, restaurant_id: str) -> List[dict]:
        """Newest first."""
        pass

    @abstractmethod
    async def update_fields(self, restaurant_id: str, qr_id: str, fields: dict) -> Optional[dict]:
        pass

    @abstractmethod
    async def increment(self, code: str, counter: str, fields: dict) -> Optional[dict]:
        """
        Bump `counter` by one and set `fields` on an active code.
        None when the code is unknown or inactive.
        """
        pass

    @abstractmethod
    async def delete(self, restaurant_id: str, qr_id: str) -> bool:
        pass


class OtpStore(ABC):

    @abstractmethod
    def put(self, phone_number: str, record: dict) -> None:
        pass

    @abstractmethod
    def get(self, phone_number: str) -> Optional[dict]:
        pass

    @abstractmethod
    def pop(self, phone_number: str) -> Optional[dict]:
        pass

    @abstractmethod
    @abstractmethod
    def purge_expired(self, now: datetime) -> int:
        """Drop records past their expires_at, returns how many went."""
        pass

    def clear(self) -> None:
        pass
