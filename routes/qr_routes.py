from fastapi import APIRouter, Depends, Query, status
from models.qr_code import OptInRequest, QRCodeCreate, QRCodeOut, QRCodePublic, QRCodeStatsResponse, QRCodeUpdate
from core.authorization import require_restaurant_user
from core.dependencies import CurrentUser, get_qr_service
from services.qr_service import QRCodeService
from utils.logger import get_logger

logger = get_logger("QR_Route")

router = APIRouter(prefix="/api/qr", tags=["QR Codes"])


def qr_view(qr_code: dict) -> dict:
    return QRCodeOut.model_validate(qr_code).model_dump(by_alias=True)


@router.get("")
async def list_qr_codes(
    current_user: CurrentUser = Depends(require_restaurant_user),
    qr_service: QRCodeService = Depends(get_qr_service),
):
    codes = await qr_service.list_codes(current_user.id)
    return {"qrCodes": [qr_view(c) for c in codes]}


@router.get("/stats/overview")
async def qr_stats(
    current_user: CurrentUser = Depends(require_restaurant_user),
    qr_service: QRCodeService = Depends(get_qr_service),
):
    stats = await qr_service.stats(current_user.id)
    return QRCodeStatsResponse.model_validate(stats).model_dump(by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_qr_code(
    payload: QRCodeCreate,
    current_user: CurrentUser = Depends(require_restaurant_user),
    qr_service: QRCodeService = Depends(get_qr_service),
):
    qr_code = await qr_service.create(current_user.id, payload)
    return {"message": "QR code created successfully.", "qrCode": qr_view(qr_code)}


# public: customers hit these straight from the printed code

@router.get("/{code}/image")
async def qr_image(
    code: str,
    size: int = Query(200, ge=50, le=1000),
    qr_service: QRCodeService = Depends(get_qr_service),
):
    return await qr_service.render_image(code, size)


@router.get("/{code}")
async def scan_qr_code(code: str, qr_service: QRCodeService = Depends(get_qr_service)):
    qr_code = await qr_service.record_scan(code)
    return {"qrCode": QRCodePublic.model_validate(qr_code).model_dump(by_alias=True)}


@router.post("/{code}/opt-in")
async def opt_in(code: str, payload: OptInRequest, qr_service: QRCodeService = Depends(get_qr_service)):
    result = await qr_service.record_opt_in(code, payload.phone_number, payload.customer_name)
    return {"message": "Opt-in recorded.", **result}


@router.put("/{qr_id}")
async def update_qr_code(
    qr_id: str,
    payload: QRCodeUpdate,
    current_user: CurrentUser = Depends(require_restaurant_user),
    qr_service: QRCodeService = Depends(get_qr_service),
):
    qr_code = await qr_service.update(current_user.id, qr_id, payload)
    return {"message": "QR code updated successfully.", "qrCode": qr_view(qr_code)}


@router.delete("/{qr_id}")
async def delete_qr_code(
    qr_id: str,
    current_user: CurrentUser = Depends(require_restaurant_user),
    qr_service: QRCodeService = Depends(get_qr_service),
):
    await qr_service.delete(current_user.id, qr_id)
    return {"message": "QR code deleted successfully."}
