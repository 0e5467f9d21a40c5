"""Prompt template request and response models."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PromptTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., description="BUSINESS_PLAN, DELIVERABLE_M1..DELIVERABLE_M8 or CUSTOM")
    content: str = Field(..., min_length=1, description="Template body with {{variable}} placeholders")
    system_prompt: Optional[str] = None
    description: Optional[str] = None
    variables: Optional[List[str]] = None
    is_active: bool = False
    is_default: bool = False


class PromptTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    system_prompt: Optional[str] = None
    description: Optional[str] = None
    variables: Optional[List[str]] = None
    is_active: Optional[bool] = None
    is_default: Optional[bool] = None


class PromptTemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: str
    content: str
    system_prompt: Optional[str] = None
    description: Optional[str] = None
    variables: List[str] = Field(default_factory=list)
    is_active: bool
    is_default: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
