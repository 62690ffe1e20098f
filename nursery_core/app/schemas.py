from typing import Annotated, Optional, List
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, StringConstraints

from .models import ProjectStage, RequestStatus

# Required text fields: surrounding whitespace stripped, blank rejected
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str = "Viewer"


class LoginIn(BaseModel):
    email: str
    password: str


class UserCreate(BaseModel):
    full_name: RequiredText
    email: EmailStr
    password: str
    role: str = "Staff"


class UserOut(BaseModel):
    id: int
    full_name: str
    email: EmailStr
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# SEEDLINGS / BATCHES / ZONES
# =============================================================================

class SeedlingIn(BaseModel):
    species: RequiredText
    height_range: RequiredText
    count: int = Field(0, ge=0)
    survived_count: Optional[int] = Field(None, ge=0)
    dead_count: Optional[int] = Field(None, ge=0)
    batch_id: Optional[int] = None
    zone_id: Optional[int] = None


class SeedlingOut(BaseModel):
    id: int
    species: str
    height_range: str
    count: int
    survived_count: Optional[int] = None
    dead_count: Optional[int] = None
    batch_id: Optional[int] = None
    zone_id: Optional[int] = None
    created_at: Optional[datetime] = None


class BatchIn(BaseModel):
    batch_code: RequiredText
    collected_at: date
    source_name: Optional[str] = None
    gps_latitude: Optional[float] = Field(None, ge=-90, le=90)
    gps_longitude: Optional[float] = Field(None, ge=-180, le=180)
    note: Optional[str] = None


class BatchOut(BaseModel):
    id: int
    batch_code: str
    collected_at: date
    source_name: Optional[str] = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class ZoneIn(BaseModel):
    zone_code: RequiredText
    name: Optional[str] = None
    note: Optional[str] = None


class ZoneOut(BaseModel):
    id: int
    zone_code: str
    name: Optional[str] = None
    note: Optional[str] = None


# =============================================================================
# PARTNERS / LOGBOOK
# =============================================================================

class PartnerIn(BaseModel):
    name: RequiredText
    contact: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None


class PartnerOut(BaseModel):
    id: int
    name: str
    contact: Optional[str] = None
    address: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class LogIn(BaseModel):
    log_date: date
    activity: RequiredText
    batch_id: Optional[int] = None
    zone_id: Optional[int] = None
    note: Optional[str] = None


class LogOut(BaseModel):
    id: int
    log_date: date
    activity: str
    batch_id: Optional[int] = None
    zone_id: Optional[int] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None


# =============================================================================
# REQUESTS
# =============================================================================

class RequestItemIn(BaseModel):
    seedling_id: int
    quantity: int = Field(..., ge=1)


class RequestCreate(BaseModel):
    partner_id: int
    request_date: date
    items: List[RequestItemIn] = Field(..., min_length=1)
    note: Optional[str] = None


class RequestItemOut(BaseModel):
    id: int
    seedling_id: Optional[int] = None
    quantity: int
    species: Optional[str] = None
    height_range: Optional[str] = None


class RequestOut(BaseModel):
    id: int
    partner_id: Optional[int] = None
    partner_name: Optional[str] = None
    request_date: date
    note: Optional[str] = None
    status: RequestStatus
    approved_at: Optional[datetime] = None
    items: List[RequestItemOut] = []


class ApprovalLineOut(BaseModel):
    item_id: int
    seedling_id: Optional[int] = None
    quantity: int
    available: Optional[int] = None


class ApprovalOut(BaseModel):
    request_id: int
    status: RequestStatus
    fulfilled: List[ApprovalLineOut] = []
    skipped: List[ApprovalLineOut] = []


class DeliveryLineOut(BaseModel):
    species: str
    height_range: str
    quantity: int


class DeliveryDocumentOut(BaseModel):
    request_id: int
    partner_name: str
    request_date: date
    note: Optional[str] = None
    lines: List[DeliveryLineOut] = []
    total_quantity: int


# =============================================================================
# PROJECT STATUS / DASHBOARD
# =============================================================================

class StageOut(BaseModel):
    key: ProjectStage
    label: str
    state: str  # done / doing / next


class ProjectStatusIn(BaseModel):
    current_stage: ProjectStage


class ProjectStatusOut(BaseModel):
    current_stage: ProjectStage
    label: str
    updated_at: Optional[datetime] = None
    timeline: List[StageOut] = []


class GroupCountOut(BaseModel):
    label: str
    count: int


class TrendPointOut(BaseModel):
    collected_at: date
    count: int


class SeasonPointOut(BaseModel):
    year: int
    month: int
    count: int


class DashboardOut(BaseModel):
    total: int
    species_count: int
    height_range_count: int
    species_stats: List[GroupCountOut] = []
    height_stats: List[GroupCountOut] = []
    growth_trend: List[TrendPointOut] = []
    survival_rate: float
    seasonal_trend: List[SeasonPointOut] = []


class PublicSummaryOut(BaseModel):
    total: int
    species_stats: List[GroupCountOut] = []
    current_stage: Optional[ProjectStage] = None
    timeline: List[StageOut] = []
