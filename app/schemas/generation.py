"""Request and response models for document generation endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class GenerateBusinessPlanRequest(BaseModel):
    client_id: UUID = Field(..., description="Client to generate the business plan for")
    background: bool = Field(
        default=False, description="Run as a durable background workflow instead of inline"
    )


class GenerateDeliverableRequest(BaseModel):
    client_id: UUID = Field(..., description="Client to generate the deliverable for")
    month: int = Field(..., ge=1, le=8, description="Program month (1-8)")
    background: bool = False


class RegenerateSectionsRequest(BaseModel):
    section_names: List[str] = Field(
        ...,
        min_length=1,
        description="Stored section names (headings) to regenerate",
        examples=[["Executive Summary", "Market Analysis"]],
    )


class RegenerateAffectedRequest(BaseModel):
    changed_fields: List[str] = Field(
        ...,
        min_length=1,
        description="Client profile fields that changed",
        examples=[["targetAudience", "brandName"]],
    )


class ResumeJobRequest(BaseModel):
    job_id: str = Field(..., description="Job id of the checkpoint to resume")
    background: bool = False


class GenerationOutcomeResponse(BaseModel):
    job_id: str
    document_id: UUID
    document_type: str
    client_id: UUID
    version: int
    section_count: int
    total_tokens: int
    resumed: bool = False
    month: Optional[int] = None


class BackgroundJobResponse(BaseModel):
    job_id: str
    workflow_id: str
    status: str = "STARTED"


class RegenerationResponse(BaseModel):
    document_id: UUID
    regenerated_count: int
    regenerated_sections: List[str]
    skipped_sections: List[str]
    total_sections: int


class SectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    section_name: str
    section_order: int
    content: str
    version: int
    tokens_used: Optional[int] = None
    generated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    version: int
    status: str
    content_markdown: str
    generated_by: Optional[str] = None
    generated_at: Optional[datetime] = None
    month: Optional[int] = None
    title: Optional[str] = None


class CheckpointResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    job_type: str
    client_id: UUID
    status: str
    total_sections: int
    completed_sections: int
    current_section: int
    progress: int
    can_resume: bool
    document_id: Optional[UUID] = None
    error_message: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class CheckpointCleanupRequest(BaseModel):
    retention_days: Optional[int] = Field(default=None, ge=0)
