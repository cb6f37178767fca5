"""Versioned record API endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from seqalloc.web.deps import AppDep
from seqalloc.web.openapi import ErrorResponse

router: APIRouter = APIRouter(tags=["histories"])


class CreateVersionRequest(BaseModel):
    """Request to update a record under a new version."""

    key: dict[str, Any] = Field(..., description="Key attributes of the record")
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Attributes merged over the stored record. A version attribute given here is ignored.",
    )

    model_config = {
        "json_schema_extra": {"examples": [{"key": {"widgetID": 42}, "attributes": {"widgetName": "runcible spoon"}}]}
    }


class CreateVersionResponse(BaseModel):
    version: int = Field(..., description="Version assigned by this update")


class LookupRequest(BaseModel):
    key: dict[str, Any] = Field(..., description="Key attributes of the record")


class LookupResponse(BaseModel):
    version: int | None = Field(..., description="Current version, null if the record was never versioned")
    items: list[dict[str, Any]] = Field(..., description="Snapshots of every version, oldest first")


@router.post(
    "/histories/{name}/versions",
    summary="Create version",
    description="Update the record and append a snapshot of it to the history, atomically.",
    operation_id="createVersion",
    status_code=201,
    responses={
        201: {"description": "Version created"},
        400: {"model": ErrorResponse, "description": "Invalid key"},
        404: {"model": ErrorResponse, "description": "History not found"},
        413: {"model": ErrorResponse, "description": "Record too large"},
        503: {"model": ErrorResponse, "description": "Store unavailable"},
    },
)
async def create_version(name: str, request: CreateVersionRequest, app: AppDep) -> CreateVersionResponse:
    return CreateVersionResponse(version=await app.allocate_version(name, request.key, request.attributes))


@router.post(
    "/histories/{name}/lookup",
    summary="Get versions",
    description="Get the current version of a record and all of its snapshots.",
    operation_id="lookupVersions",
    responses={
        200: {"description": "Current version and snapshots"},
        400: {"model": ErrorResponse, "description": "Invalid key"},
        404: {"model": ErrorResponse, "description": "History not found"},
    },
)
async def lookup_versions(name: str, request: LookupRequest, app: AppDep) -> LookupResponse:
    version, items = await app.get_versions(name, request.key)
    return LookupResponse(version=version, items=items)
