"""
Request/response schemas for the sync and embedding endpoints.

Field names on the wire are camelCase (``sourceDatabaseId``); Python code uses
snake_case through aliases.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vista.models.embedding import EmbeddingJobStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ========================================
# Full sync
# ========================================


class SyncRequest(CamelModel):
    """Request schema for triggering a full resync of a profile's database."""

    source_database_id: str = Field(..., alias="sourceDatabaseId", min_length=1)
    source_api_key: str = Field(..., alias="sourceApiKey", min_length=1)
    tenant_id: str = Field(..., alias="tenantId", min_length=1)

    @field_validator("source_database_id", "source_api_key", "tenant_id", mode="before")
    @classmethod
    def strip_value(cls, v):
        if isinstance(v, int):
            v = str(v)
        if isinstance(v, str):
            v = v.strip()
        return v


class SyncResponse(BaseModel):
    success: bool = True
    message: str
    task_id: Optional[str] = Field(None, serialization_alias="taskId")


# ========================================
# Embeddings
# ========================================


class EmbeddingJobCreateRequest(CamelModel):
    tenant_id: str = Field(..., alias="tenantId", min_length=1)

    @field_validator("tenant_id", mode="before")
    @classmethod
    def coerce_tenant_id(cls, v):
        return str(v).strip() if isinstance(v, (int, str)) else v


class EmbeddingGenerateRequest(CamelModel):
    job_id: int = Field(..., alias="jobId", gt=0)


class EmbeddingGenerateResponse(BaseModel):
    success: bool = True
    message: str
    items_processed: int = Field(0, serialization_alias="itemsProcessed")


class EmbeddingJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: int = Field(serialization_alias="tenantId")
    status: EmbeddingJobStatus
    started_at: datetime = Field(serialization_alias="startedAt")
    completed_at: Optional[datetime] = Field(None, serialization_alias="completedAt")
    total_items: int = Field(serialization_alias="totalItems")
    items_processed: int = Field(serialization_alias="itemsProcessed")
    error: Optional[str] = None
