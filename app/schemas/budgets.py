"""Token budget request and response models."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

Period = Literal["DAILY", "WEEKLY", "MONTHLY"]


class TokenBudgetCreate(BaseModel):
    period: Period
    token_limit: int = Field(..., gt=0)
    cost_limit: float = Field(..., gt=0)
    alert_at_50: bool = True
    alert_at_75: bool = True
    alert_at_90: bool = True
    alert_at_100: bool = True
    auto_pause_at_limit: bool = False


class TokenBudgetUpdate(BaseModel):
    token_limit: Optional[int] = Field(default=None, gt=0)
    cost_limit: Optional[float] = Field(default=None, gt=0)
    is_active: Optional[bool] = None
    is_paused: Optional[bool] = None
    alert_at_50: Optional[bool] = None
    alert_at_75: Optional[bool] = None
    alert_at_90: Optional[bool] = None
    alert_at_100: Optional[bool] = None
    auto_pause_at_limit: Optional[bool] = None


class TokenBudgetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period: str
    token_limit: int
    cost_limit: float
    tokens_used: int
    cost_used: float
    is_active: bool
    is_paused: bool
    alert_at_50: bool
    alert_at_75: bool
    alert_at_90: bool
    alert_at_100: bool
    auto_pause_at_limit: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
