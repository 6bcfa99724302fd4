from __future__ import annotations
from datetime import date
from pydantic import BaseModel, Field
from typing import Literal, Optional

class CowCreate(BaseModel):
    cow_number: str = Field(..., min_length=1)
    breed: str = Field(default="Holstein")

class BreedingCycleCreate(BaseModel):
    cow_id: int
    ai_date: date
    ai_status: Literal["done", "pending", "failed"] = "done"

    semen_batch: Optional[str] = None
    technician_name: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None

class PDUpdate(BaseModel):
    pd_result: Literal["positive", "negative", "inconclusive"]
    pd_date: date

class DeliveryUpdate(BaseModel):
    actual_delivery_date: date
    calf_gender: Optional[Literal["male", "female"]] = None
    notes: Optional[str] = None

class AlertSettingsUpdate(BaseModel):
    pd_alert_days: Optional[int] = Field(default=None, ge=1, le=365)
    delivery_expected_days: Optional[int] = Field(default=None, ge=1, le=400)
