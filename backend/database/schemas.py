from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict
from datetime import datetime
from app.constants import (
    UserRole, IdentifierKind, AllocationOutcome, FraudCheckType, NotificationSeverity
)
from utils.identifiers import require_uuid


# ── Shared value types ────────────────────────────────────────────────────────

class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class AllocatedGoods(BaseModel):
    goods_type_id: str
    name: str
    quantity: int = Field(default=1, ge=1)


def _clean_identifiers(value: Optional[Dict]) -> Dict[str, str]:
    """Reject unknown identifier kinds, drop blank values."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("unique_identifiers must be a mapping of kind to value")
    cleaned: Dict[str, str] = {}
    for kind, raw in value.items():
        try:
            kind = IdentifierKind(kind).value
        except ValueError:
            raise ValueError(f"Unknown identifier kind: {kind}")
        if raw is None:
            continue
        if not isinstance(raw, (str, int)):
            raise ValueError(f"Identifier {kind} must be text")
        text = str(raw).strip()
        if text:
            cleaned[kind] = text
    return cleaned


# ── Session ───────────────────────────────────────────────────────────────────

class SessionContext(BaseModel):
    user_id: str
    role: UserRole
    region_id: Optional[str] = None

    @field_validator("user_id")
    @classmethod
    def _user_id(cls, v):
        return require_uuid(v, "user_id")

    @field_validator("region_id")
    @classmethod
    def _region_id(cls, v):
        return require_uuid(v, "region_id") if v else None


# ── Region ────────────────────────────────────────────────────────────────────

class RegionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def _strip(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class RegionResponse(BaseModel):
    id: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


# ── Disburser ─────────────────────────────────────────────────────────────────

class DisburserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone_number: str = Field(min_length=3, max_length=20)
    region_id: str
    is_active: bool = True


class DisburserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone_number: Optional[str] = Field(default=None, min_length=3, max_length=20)
    region_id: Optional[str] = None
    is_active: Optional[bool] = None


class DisburserResponse(BaseModel):
    id: str
    name: str
    phone_number: str
    region_id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ── Beneficiary ───────────────────────────────────────────────────────────────

class BeneficiaryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    region_id: Optional[str] = None        # defaults to the disburser's region
    estimated_age: Optional[int] = Field(default=None, ge=0, le=130)
    height: Optional[float] = Field(default=None, gt=0, le=300)
    unique_identifiers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("unique_identifiers", mode="before")
    @classmethod
    def _identifiers(cls, v):
        return _clean_identifiers(v)


class BeneficiaryResponse(BaseModel):
    id: str
    name: str
    region_id: str
    estimated_age: Optional[int] = None
    height: Optional[float] = None
    unique_identifiers: Dict[str, str] = Field(default_factory=dict)
    registered_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ── Goods ─────────────────────────────────────────────────────────────────────

class GoodsTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("description")
    @classmethod
    def _description(cls, v):
        return (v or "").strip() or None


class GoodsTypeResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RegionalGoodsLine(BaseModel):
    id: str
    region_id: str
    goods_type_id: str
    goods_name: str
    description: Optional[str] = None
    quantity: int


class QuantityUpdate(BaseModel):
    quantity: int


# ── Allocation ────────────────────────────────────────────────────────────────

class AllocationRequest(BaseModel):
    beneficiary_id: Optional[str] = None
    goods_type_ids: List[str] = Field(default_factory=list)
    location: Optional[Location] = None


class AllocationResponse(BaseModel):
    id: str
    beneficiary_id: str
    disburser_id: str
    goods: List[AllocatedGoods]
    location: Optional[Location] = None
    allocated_at: datetime

    class Config:
        from_attributes = True


class AllocationListItem(AllocationResponse):
    beneficiary_name: Optional[str] = None
    disburser_name: Optional[str] = None


class FraudAlertResponse(BaseModel):
    id: str
    beneficiary_id: str
    disburser_id: str
    location: Optional[Location] = None
    details: Optional[str] = None
    attempted_at: datetime

    class Config:
        from_attributes = True


class AllocationResult(BaseModel):
    outcome: AllocationOutcome
    message: str
    allocation: Optional[AllocationResponse] = None
    fraud_alert: Optional[FraudAlertResponse] = None
    remaining_stock: Dict[str, int] = Field(default_factory=dict)


# ── Fraud monitoring ──────────────────────────────────────────────────────────

class FraudCheck(BaseModel):
    id: str
    type: FraudCheckType
    severity: NotificationSeverity
    description: str
    timestamp: datetime


class Notification(BaseModel):
    check_id: str
    severity: NotificationSeverity
    message: str
    link: Optional[str] = None
    received_at: datetime


# ── Dashboard ─────────────────────────────────────────────────────────────────

class DashboardMetrics(BaseModel):
    total_regions: int
    total_disbursers: int
    total_beneficiaries: int
    total_allocations: int
    total_fraud_alerts: int
    allocations_last_7_days: Dict[str, int]
    units_distributed: Dict[str, int]
    low_stock_lines: List[RegionalGoodsLine]
    last_updated: datetime
