# src/dealroom/schemas/commission.py
"""Commission setting schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CommissionUpdate(BaseModel):
    commission_percentage: Decimal = Field(..., description="New platform commission, 0 to 100")


class CommissionSettingResponse(BaseModel):
    id: int
    commission_percentage: Decimal
    is_active: bool
    effective_from: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CommissionCurrentResponse(BaseModel):
    commission_percentage: Decimal
    is_default: bool = Field(..., description="True when no setting exists and the configured default applies")


class CommissionHistoryResponse(BaseModel):
    items: list[CommissionSettingResponse]
    total: int
    limit: int
    offset: int
