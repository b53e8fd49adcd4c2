from datetime import datetime
from typing import List, Optional, Tuple
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError
from db.base import AccountStore, DuplicateKeyError, OrderStore, QRCodeStore
from db.db_operation import MongoConnection
from utils.logger import get_logger

logger = get_logger("MONGO_STORE")

# keep Mongo's own _id out of every document we hand back
PROJECTION = {"_id": 0}


class MongoAccountStore(AccountStore):
    def __init__(self, conn: MongoConnection):
        self.collection = conn.accounts_collection

    async def insert(self, doc: dict) -> dict:
        try:
            await self.collection.insert_one(dict(doc))
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(str(e))
        logger.info(f"Account inserted into database with id: {doc['id']}")
        return doc

    async def get_by_id(self, account_id: str) -> Optional[dict]:
        return await self.collection.find_one({"id": account_id}, PROJECTION)

    async def get_by_phone(self, phone_number: str) -> Optional[dict]:
        return await self.collection.find_one({"phone_number": phone_number}, PROJECTION)

    async def update(self, account_id: str, fields: dict) -> Optional[dict]:
        return await self.collection.find_one_and_update(
            {"id": account_id},
            {"$set": fields},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )


class MongoOrderStore(OrderStore):
    def __init__(self, conn: MongoConnection):
        self.collection = conn.orders_collection

    @staticmethod
    def _query(restaurant_id, status=None, order_ids=None, since=None) -> dict:
        query = {"restaurant_id": restaurant_id}
        if status:
            query["status"] = status
        if order_ids is not None:
            query["order_id"] = {"$in": list(order_ids)}
        if since:
            query["created_at"] = {"$gte": since}
        return query

    async def insert(self, doc: dict) -> dict:
        try:
            await self.collection.insert_one(dict(doc))
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(str(e))
        return doc

    async def order_id_exists(self, order_id: str) -> bool:
        return await self.collection.count_documents({"order_id": order_id}, limit=1) > 0

    async def get(self, restaurant_id: str, order_id: str) -> Optional[dict]:
        return await self.collection.find_one({"order_id": order_id, "restaurant_id": restaurant_id}, PROJECTION)

    async def find(
        self,
        restaurant_id: str,
        status: Optional[str] = None,
        order_ids: Optional[List[str]] = None,
        since: Optional[datetime] = None,
    ) -> List[dict]:
        cursor = self.collection.find(self._query(restaurant_id, status, order_ids, since), PROJECTION)
        return await cursor.to_list(length=None)

    async def page(self, restaurant_id, status, sort_field, descending, skip, limit) -> Tuple[List[dict], int]:
        query = self._query(restaurant_id, status)
        direction = DESCENDING if descending else ASCENDING
        # _id as tie breaker keeps pages stable
        cursor = (
            self.collection.find(query, PROJECTION)
            .sort([(sort_field, direction), ("_id", direction)])
            .skip(skip)
            .limit(limit)
        )
        orders = await cursor.to_list(length=limit)
        total = await self.collection.count_documents(query)
        return orders, total

    async def update_fields(self, restaurant_id: str, order_id: str, fields: dict) -> Optional[dict]:
        return await self.collection.find_one_and_update(
            {"order_id": order_id, "restaurant_id": restaurant_id},
            {"$set": fields},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )

    async def push_notification(self, restaurant_id: str, order_id: str, entry: dict) -> Optional[dict]:
        return await self.collection.find_one_and_update(
            {"order_id": order_id, "restaurant_id": restaurant_id},
            {"$push": {"notification_history": entry}},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, restaurant_id: str, order_id: str) -> bool:
        result = await self.collection.delete_one({"order_id": order_id, "restaurant_id": restaurant_id})
        return result.deleted_count > 0


class MongoQRCodeStore(QRCodeStore):
    def __init__(self, conn: MongoConnection):
        self.collection = conn.qr_codes_collection

    async def insert(self, doc: dict) -> dict:
        try:
            await self.collection.insert_one(dict(doc))
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(str(e))
        return doc

    async def code_exists(self, code: str) -> bool:
        return await self.collection.count_documents({"code": code}, limit=1) > 0

    async def get_by_code(self, code: str) -> Optional[dict]:
        return await self.collection.find_one({"code": code}, PROJECTION)

    async def get(self, restaurant_id: str, qr_id: str) -> Optional[dict]:
        return await self.collection.find_one({"id": qr_id, "restaurant_id": restaurant_id}, PROJECTION)

    async def find(self, restaurant_id: str) -> List[dict]:
        cursor = self.collection.find({"restaurant_id": restaurant_id}, PROJECTION).sort("created_at", DESCENDING)
        return await cursor.to_list(length=None)

    async def update_fields(self, restaurant_id: str, qr_id: str, fields: dict) -> Optional[dict]:
        return await self.collection.find_one_and_update(
            {"id": qr_id, "restaurant_id": restaurant_id},
            {"$set": fields},
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )

    async def increment(self, code: str, counter: str, fields: dict) -> Optional[dict]:
        update = {"$inc": {counter: 1}}
        if fields:
            update["$set"] = fields
        return await self.collection.find_one_and_update(
            {"code": code, "is_active": True},
            update,
            projection=PROJECTION,
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, restaurant_id: str, qr_id: str) -> bool:
        result = await self.collection.delete_one({"id": qr_id, "restaurant_id": restaurant_id})
        return result.deleted_count > 0
