# scripts/seed_demo_account.py
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.container import build_container
from core.exceptions import Conflict
from models.qr_code import QRCodeCreate
from settings.config import settings

DEMO_PHONE = "+15550000000"
DEMO_PASSWORD = "Demo@123"

async def seed():
    container = build_container(settings)
    if container.mongo is not None:
        await container.mongo.connect()
        await container.mongo.create_indexes()
    try:
        result = await container.auth_service.register("Demo Restaurant", DEMO_PHONE, "demo@readyping.app", DEMO_PASSWORD)
        account_id = result["user"]["id"]
        print("Created demo account:", DEMO_PHONE, account_id)
    except Conflict:
        account = await container.accounts.get_by_phone(DEMO_PHONE)
        account_id = account["id"]
        print("Demo account already exists:", account_id)

    codes = await container.qr_service.list_codes(account_id)
    if not codes:
        qr_code = await container.qr_service.create(account_id, QRCodeCreate(name="Counter", description="Main counter"))
        print("Created QR code:", qr_code["code"], qr_code["url"])
    else:
        print("QR codes already present:", ", ".join(c["code"] for c in codes))

    if container.mongo is not None:
        container.mongo.close()

if __name__ == "__main__":
    asyncio.run(seed())
