"""Pydantic schemas for inventory items and the transaction log.

Learn: Pydantic v2 models validate request/response data. Separate
"Create"/"Update" schemas (input) from "Read" schemas (output).
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# ─── Items ──────────────────────────────────────────────

class ItemCreate(BaseModel):
    sku: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=100)
    quantity: int = Field(default=0, ge=0)
    reserved: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)
    hazardous: bool = False


class ItemUpdate(BaseModel):
    """Partial update — only fields that are set get applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=100)
    quantity: Optional[int] = Field(None, ge=0)
    reserved: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    hazardous: Optional[bool] = None

    @field_validator("name", "quantity", "reserved", "low_stock_threshold", "hazardous")
    @classmethod
    def not_null(cls, v):
        """These columns can be omitted but not cleared."""
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class ItemRead(BaseModel):
    id: uuid.UUID
    sku: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    quantity: int
    reserved: int
    available: int
    low_stock_threshold: int
    is_low_stock: bool
    hazardous: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Stock movements ────────────────────────────────────

class StockAdjustment(BaseModel):
    """Relative change to quantity: +10 received, -3 shipped."""
    delta: int
    reason: Optional[str] = Field(None, max_length=200)


# ─── Transaction log ────────────────────────────────────

class TransactionRead(BaseModel):
    id: int
    item_id: Optional[uuid.UUID] = None
    type: str
    quantity_change: int
    data: dict
    actor: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
