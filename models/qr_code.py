from pydantic import Field
from typing import List, Optional
from datetime import datetime
from models.base import CamelModel


class QRCodeSettings(CamelModel):
    auto_opt_in: bool = True
    require_confirmation: bool = False
    message: str = "Scan to receive WhatsApp notifications when your food is ready!"


class QRCodeCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    settings: Optional[dict] = None


class QRCodeUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    settings: Optional[dict] = None


class OptInRequest(CamelModel):
    phone_number: str = Field(..., min_length=1)
    customer_name: Optional[str] = None


class QRCodeOut(CamelModel):
    id: str
    restaurant_id: str
    code: str
    name: str
    description: Optional[str] = None
    url: str
    is_active: bool = True
    scan_count: int = 0
    opt_in_count: int = 0
    settings: QRCodeSettings = Field(default_factory=QRCodeSettings)
    last_scanned: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QRCodePublic(CamelModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    restaurant_name: Optional[str] = None
    settings: QRCodeSettings = Field(default_factory=QRCodeSettings)


class QRCodeStats(CamelModel):
    total_codes: int = 0
    active_codes: int = 0
    total_scans: int = 0
    total_opt_ins: int = 0


class RecentScan(CamelModel):
    id: str
    name: str
    scan_count: int
    last_scanned: Optional[datetime] = None


class QRCodeStatsResponse(CamelModel):
    stats: QRCodeStats
    recent_scans: List[RecentScan] = Field(default_factory=list)
