"""Pydantic models for the authorization service wire protocol."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    """Base model for authorization service payloads."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class WireResponse(WireModel):
    """Service replies; fields added by newer services are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BeginTransferRequest(WireModel):
    key: str
    content_type: str = Field(default="application/octet-stream", alias="contentType")
    total_size: int = Field(alias="totalSize")


class BeginTransferResponse(WireResponse):
    transfer_id: str = Field(alias="transferId")
    canonical_key: str = Field(alias="canonicalKey")
    total_parts: int = Field(alias="totalParts", ge=1)
    part_size: int = Field(alias="partSize", gt=0)


class AuthorizePartRequest(WireModel):
    transfer_id: str = Field(alias="transferId")
    key: str
    part_number: int = Field(alias="partNumber")


class AuthorizeSingleRequest(WireModel):
    key: str
    content_type: str = Field(default="application/octet-stream", alias="contentType")
    total_size: int = Field(alias="totalSize")


class GrantResponse(WireResponse):
    """Presigned upload URL for one part (single uploads use part 1)."""

    url: str
    part_number: int = Field(alias="partNumber")
    canonical_key: str | None = Field(default=None, alias="canonicalKey")
    headers: dict[str, str] = Field(default_factory=dict)
    expires_in: int | None = Field(default=None, alias="expiresIn")


class CompletedPartPayload(WireModel):
    part_number: int = Field(alias="partNumber", ge=1)
    integrity_tag: str = Field(alias="integrityTag", min_length=1)


class FinalizeRequest(WireModel):
    transfer_id: str = Field(alias="transferId")
    key: str
    parts: list[CompletedPartPayload] = Field(min_length=1)


class FinalizeResponse(WireResponse):
    confirmed: bool
    canonical_key: str = Field(alias="canonicalKey")


class DiscardRequest(WireModel):
    transfer_id: str = Field(alias="transferId")
    key: str


class DiscardResponse(WireResponse):
    acknowledged: bool


__all__ = [
    "AuthorizePartRequest",
    "AuthorizeSingleRequest",
    "BeginTransferRequest",
    "BeginTransferResponse",
    "CompletedPartPayload",
    "DiscardRequest",
    "DiscardResponse",
    "FinalizeRequest",
    "FinalizeResponse",
    "GrantResponse",
    "WireModel",
    "WireResponse",
]
