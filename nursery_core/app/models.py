from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, Text, Boolean, Float,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from .db import Base


class ProjectStage(str, Enum):
    """Project lifecycle stages, in the order the project moves through them"""
    SEED_COLLECTION = "seed_collection"
    NURSERY_PROPAGATION = "nursery_propagation"
    SITE_PREPARATION = "site_preparation"
    PLANTING_DAY = "planting_day"


STAGE_LABELS = {
    ProjectStage.SEED_COLLECTION: "Seed collection",
    ProjectStage.NURSERY_PROPAGATION: "Nursery propagation",
    ProjectStage.SITE_PREPARATION: "Site preparation",
    ProjectStage.PLANTING_DAY: "Planting day",
}


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)  # Account status
    created_at = Column(DateTime, default=datetime.utcnow)


class RevokedToken(Base):
    """Access tokens invalidated by sign-out, keyed by their JWT id"""
    __tablename__ = "revoked_tokens"
    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String, unique=True, index=True, nullable=False)
    revoked_at = Column(DateTime, default=datetime.utcnow)


class Batch(Base):
    __tablename__ = "batches"
    id = Column(Integer, primary_key=True, index=True)
    batch_code = Column(String, nullable=False, index=True)
    collected_at = Column(Date, nullable=False)
    source_name = Column(String, nullable=True)
    gps_latitude = Column(Float, nullable=True)
    gps_longitude = Column(Float, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Zone(Base):
    __tablename__ = "nursery_zones"
    id = Column(Integer, primary_key=True, index=True)
    zone_code = Column(String, nullable=False, index=True)
    name = Column(String, nullable=True)
    note = Column(Text, nullable=True)


class Seedling(Base):
    __tablename__ = "seedlings"
    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_seedlings_count_non_negative"),
    )
    id = Column(Integer, primary_key=True, index=True)
    species = Column(String, nullable=False, index=True)
    height_range = Column(String, nullable=False)  # opaque label, e.g. "10-20 cm"
    count = Column(Integer, nullable=False, default=0)
    survived_count = Column(Integer, nullable=True)
    dead_count = Column(Integer, nullable=True)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="SET NULL"), nullable=True)
    zone_id = Column(Integer, ForeignKey("nursery_zones.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Partner(Base):
    __tablename__ = "partners"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    contact = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class NurseryLog(Base):
    __tablename__ = "nursery_logs"
    id = Column(Integer, primary_key=True, index=True)
    log_date = Column(Date, nullable=False, index=True)
    activity = Column(Text, nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="SET NULL"), nullable=True)
    zone_id = Column(Integer, ForeignKey("nursery_zones.id", ondelete="SET NULL"), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class SeedlingRequest(Base):
    __tablename__ = "seedling_requests"
    id = Column(Integer, primary_key=True, index=True)
    partner_id = Column(Integer, ForeignKey("partners.id", ondelete="SET NULL"), nullable=True)
    request_date = Column(Date, nullable=False, index=True)
    note = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=RequestStatus.PENDING.value)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    items = relationship(
        "SeedlingRequestItem",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="SeedlingRequestItem.id",
    )


class SeedlingRequestItem(Base):
    __tablename__ = "seedling_request_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_request_items_quantity_positive"),
    )
    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(
        Integer, ForeignKey("seedling_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # a deleted seedling leaves the line in place without a species
    seedling_id = Column(Integer, ForeignKey("seedlings.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False)
    request = relationship("SeedlingRequest", back_populates="items")


class ProjectStatus(Base):
    """Single-row table: the row with id 1 is the project's current stage"""
    __tablename__ = "project_status"
    __table_args__ = (
        CheckConstraint("id = 1", name="ck_project_status_single_row"),
    )
    id = Column(Integer, primary_key=True, default=1)
    current_stage = Column(String, nullable=False, default=ProjectStage.SEED_COLLECTION.value)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
