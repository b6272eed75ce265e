"""Upload authorization routes."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException

from s3browser_upload.api.dependencies import get_upload_authorization_service
from s3browser_upload.application.services import UploadAuthorizationService
from s3browser_upload.domain.entities import CompletedPart
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    InvalidRequestError,
    PartMismatchError,
    TransferNotFoundError,
    UploadError,
)
from s3browser_upload.domain.wire_models import (
    AuthorizePartRequest,
    AuthorizeSingleRequest,
    BeginTransferRequest,
    BeginTransferResponse,
    DiscardRequest,
    DiscardResponse,
    FinalizeRequest,
    FinalizeResponse,
    GrantResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["uploads"])

_STATUS_BY_ERROR: tuple[tuple[type[UploadError], int], ...] = (
    (InvalidRequestError, 400),
    (AuthRejectedError, 403),
    (TransferNotFoundError, 404),
    (PartMismatchError, 409),
)


def _raise_http_exception(exc: UploadError) -> NoReturn:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=str(exc))
    logger.warning("Storage operation failed: %s", exc)
    raise HTTPException(status_code=502, detail="Storage operation failed")


@router.post("/initiate", response_model=BeginTransferResponse, response_model_by_alias=True)
async def initiate_upload(
    request: BeginTransferRequest,
    service: UploadAuthorizationService = Depends(get_upload_authorization_service),
) -> BeginTransferResponse:
    """Start a multipart upload and report its part layout."""

    try:
        return await service.begin_transfer(
            request.key, request.content_type, request.total_size
        )
    except UploadError as exc:
        _raise_http_exception(exc)


@router.post(
    "/part-url",
    response_model=GrantResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def authorize_part(
    request: AuthorizePartRequest,
    service: UploadAuthorizationService = Depends(get_upload_authorization_service),
) -> GrantResponse:
    """Mint a presigned URL for one part of a tracked upload."""

    try:
        return await service.authorize_part(
            request.transfer_id, request.key, request.part_number
        )
    except UploadError as exc:
        _raise_http_exception(exc)


@router.post(
    "/single-url",
    response_model=GrantResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def authorize_single(
    request: AuthorizeSingleRequest,
    service: UploadAuthorizationService = Depends(get_upload_authorization_service),
) -> GrantResponse:
    """Mint a presigned URL for a whole-object PUT."""

    try:
        return await service.authorize_single(
            request.key, request.content_type, request.total_size
        )
    except UploadError as exc:
        _raise_http_exception(exc)


@router.post("/complete", response_model=FinalizeResponse, response_model_by_alias=True)
async def complete_upload(
    request: FinalizeRequest,
    service: UploadAuthorizationService = Depends(get_upload_authorization_service),
) -> FinalizeResponse:
    """Verify the caller's parts against storage and assemble the object."""

    parts = [
        CompletedPart(part_number=part.part_number, integrity_tag=part.integrity_tag)
        for part in request.parts
    ]
    try:
        return await service.finalize(request.transfer_id, request.key, parts)
    except UploadError as exc:
        _raise_http_exception(exc)


@router.post("/abort", response_model=DiscardResponse)
async def abort_upload(
    request: DiscardRequest,
    service: UploadAuthorizationService = Depends(get_upload_authorization_service),
) -> DiscardResponse:
    """Abort a multipart upload. Unknown uploads are acknowledged."""

    try:
        return await service.discard(request.transfer_id, request.key)
    except UploadError as exc:
        _raise_http_exception(exc)


__all__ = ["router"]
