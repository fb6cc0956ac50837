"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like UUID serialization,
ensuring consistency across all response schemas, plus the response envelope every
endpoint returns.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar
from uuid import UUID
from pydantic import BaseModel, ConfigDict


DataT = TypeVar("DataT")


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Features:
    - Automatically handles UUID → string serialization in JSON
    - Enables from_attributes for ORM compatibility
    - Consistent datetime serialization

    Usage:
        class GoodsReceiptResponse(BaseResponseSchema):
            id: UUID
            grn_number: str
            warehouse_id: Optional[UUID] = None
    """
    model_config = ConfigDict(
        from_attributes=True,
        # Serialize UUIDs as strings in JSON output
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    These schemas accept string UUIDs from clients and convert to UUID objects.
    No from_attributes needed since these don't read from ORM.
    """
    model_config = ConfigDict(
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional by default for partial updates.
    """
    model_config = ConfigDict(
        extra='ignore',
    )


# ==================== Envelope ====================

class ApiResponse(BaseModel, Generic[DataT]):
    """Success envelope: {"success": true, "data": ...}"""
    success: bool = True
    data: DataT


class PaginatedData(BaseModel, Generic[DataT]):
    items: List[DataT]
    total: int
    skip: int = 0
    limit: int = 50


class ErrorBody(BaseModel):
    message: str
    code: int
    details: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Error envelope: {"success": false, "error": {"message": ..., "code": ...}}"""
    success: bool = False
    error: ErrorBody
