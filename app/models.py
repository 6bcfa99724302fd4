from __future__ import annotations

from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, JSON, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from .db import Base

class Cow(Base):
    __tablename__ = "cows"

    id = Column(Integer, primary_key=True, index=True)
    cow_number = Column(String, unique=True, index=True, nullable=False)

    breed = Column(String, nullable=False, default="Holstein")

    # Milking-group move workflow
    needs_milking_move = Column(Boolean, nullable=False, default=False)
    needs_milking_move_at = Column(DateTime, nullable=True)
    moved_to_milking = Column(Boolean, nullable=False, default=False)
    moved_to_milking_at = Column(DateTime, nullable=True)

    cycles = relationship("BreedingCycle", back_populates="cow", cascade="all, delete-orphan")

class BreedingCycle(Base):
    __tablename__ = "breeding_cycles"

    id = Column(Integer, primary_key=True, index=True)
    cow_id = Column(Integer, ForeignKey("cows.id"), nullable=False)
    service_number = Column(Integer, nullable=False)

    ai_date = Column(Date, nullable=False)
    ai_status = Column(String, nullable=False, default="done")  # done / pending / failed
    semen_batch = Column(String, nullable=True)
    technician_name = Column(String, nullable=True)

    pd_done = Column(Boolean, nullable=False, default=False)
    pd_result = Column(String, nullable=True)  # positive / negative / inconclusive
    pd_date = Column(Date, nullable=True)

    expected_delivery_date = Column(Date, nullable=True)
    actual_delivery_date = Column(Date, nullable=True)
    calf_gender = Column(String, nullable=True)

    notes = Column(String, nullable=True)

    cow = relationship("Cow", back_populates="cycles")

    __table_args__ = (
        UniqueConstraint("cow_id", "service_number", name="uix_cow_service"),
        Index("idx_cycle_cow_ai_date", "cow_id", "ai_date"),
        # at most one unresolved cycle per cow
        Index(
            "uix_open_cycle_per_cow",
            "cow_id",
            unique=True,
            sqlite_where=(pd_done == False),  # noqa: E712
            postgresql_where=(pd_done == False),  # noqa: E712
        ),
    )

class AppSetting(Base):
    __tablename__ = "app_settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
