"""Sequence numbering API endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from seqalloc.web.deps import AppDep
from seqalloc.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["sequences"])


class CreateItemRequest(BaseModel):
    """Request to create a record numbered from a sequence."""

    attributes: dict[str, Any] = Field(default_factory=dict, description="Attributes of the new record")

    model_config = {"json_schema_extra": {"examples": [{"attributes": {"widgetName": "runcible spoon"}}]}}


class CreateItemResponse(BaseModel):
    id: int = Field(..., description="ID assigned to the new record")


class LastValueResponse(BaseModel):
    value: int | None = Field(..., description="Last ID issued, null if the sequence is unused")


@router.post(
    "/sequences/{name}/items",
    summary="Create numbered record",
    description=(
        "Reserve the next ID of the sequence and create a record stamped with it. "
        "Sequences configured with `dangerously` make one attempt and answer 409 when another writer won."
    ),
    operation_id="createSequenceItem",
    status_code=201,
    responses={
        201: {"description": "Record created"},
        404: {"model": ErrorResponse, "description": "Sequence not found"},
        409: {"model": ErrorResponse, "description": "Lost a race in unguarded mode, or retries exhausted"},
        413: {"model": ErrorResponse, "description": "Record too large"},
        503: {"model": ErrorResponse, "description": "Store unavailable"},
    },
)
async def create_item(name: str, request: CreateItemRequest, app: AppDep) -> CreateItemResponse:
    return CreateItemResponse(id=await app.allocate_id(name, request.attributes))


@router.get(
    "/sequences/{name}/last",
    summary="Get last ID",
    description="Get the last ID issued by the sequence without allocating.",
    operation_id="getSequenceLast",
    responses={
        200: {"description": "Last issued ID"},
        404: {"model": ErrorResponse, "description": "Sequence not found"},
    },
)
async def get_last(name: str, app: AppDep) -> LastValueResponse:
    return LastValueResponse(value=await app.get_last_id(name))
