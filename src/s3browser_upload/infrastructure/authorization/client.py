"""HTTP client for the upload authorization service."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

import httpx
from pydantic import ValidationError

from s3browser_upload.domain.entities import CompletedPart
from s3browser_upload.domain.errors import (
    AuthRejectedError,
    InvalidRequestError,
    NetworkError,
    PartMismatchError,
    TransferNotFoundError,
    UploadError,
)
from s3browser_upload.domain.grants import AuthorizationGrant
from s3browser_upload.domain.ports import AuthorizationService
from s3browser_upload.domain.wire_models import (
    AuthorizePartRequest,
    AuthorizeSingleRequest,
    BeginTransferRequest,
    BeginTransferResponse,
    CompletedPartPayload,
    DiscardRequest,
    DiscardResponse,
    FinalizeRequest,
    FinalizeResponse,
    GrantResponse,
    WireModel,
    WireResponse,
)

ResponseModelT = TypeVar("ResponseModelT", bound=WireResponse)

_STATUS_ERRORS: dict[int, type[UploadError]] = {
    400: InvalidRequestError,
    413: InvalidRequestError,
    422: InvalidRequestError,
    401: AuthRejectedError,
    403: AuthRejectedError,
    404: TransferNotFoundError,
    409: PartMismatchError,
}


class HttpAuthorizationClient(AuthorizationService):
    """Wrapper around the authorization service upload endpoints."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = self._normalize_base_url(base_url)
        self._http = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def close(self) -> None:
        """Release underlying HTTP resources."""

        await self._http.aclose()

    async def begin_transfer(
        self, key: str, content_type: str, total_size: int
    ) -> BeginTransferResponse:
        """Call `/upload/initiate`."""

        request = BeginTransferRequest(
            key=key, content_type=content_type, total_size=total_size
        )
        return await self._post("/upload/initiate", request, BeginTransferResponse)

    async def authorize_part(
        self, transfer_id: str, key: str, part_number: int
    ) -> AuthorizationGrant:
        """Call `/upload/part-url`."""

        request = AuthorizePartRequest(
            transfer_id=transfer_id, key=key, part_number=part_number
        )
        response = await self._post("/upload/part-url", request, GrantResponse)
        if response.part_number != part_number:
            raise InvalidRequestError(
                f"Grant was issued for part {response.part_number}, expected {part_number}."
            )
        return AuthorizationGrant(
            url=response.url,
            part_number=response.part_number,
            headers=response.headers,
        )

    async def authorize_single(
        self, key: str, content_type: str, total_size: int
    ) -> tuple[str, AuthorizationGrant]:
        """Call `/upload/single-url`."""

        request = AuthorizeSingleRequest(
            key=key, content_type=content_type, total_size=total_size
        )
        response = await self._post("/upload/single-url", request, GrantResponse)
        canonical_key = response.canonical_key or key
        return canonical_key, AuthorizationGrant(
            url=response.url, part_number=1, headers=response.headers
        )

    async def finalize(
        self, transfer_id: str, key: str, parts: Sequence[CompletedPart]
    ) -> FinalizeResponse:
        """Call `/upload/complete` with parts in ascending order."""

        numbers = [part.part_number for part in parts]
        if numbers != sorted(numbers):
            raise ValueError("Completed parts must be sorted by part number.")

        request = FinalizeRequest(
            transfer_id=transfer_id,
            key=key,
            parts=[
                CompletedPartPayload(
                    part_number=part.part_number, integrity_tag=part.integrity_tag
                )
                for part in parts
            ],
        )
        response = await self._post("/upload/complete", request, FinalizeResponse)
        if not response.confirmed:
            raise PartMismatchError(f"Transfer {transfer_id} was not confirmed by the service.")
        return response

    async def discard(self, transfer_id: str, key: str) -> bool:
        """Call `/upload/abort`. Unknown transfers count as discarded."""

        request = DiscardRequest(transfer_id=transfer_id, key=key)
        try:
            response = await self._post("/upload/abort", request, DiscardResponse)
        except TransferNotFoundError:
            return True
        return response.acknowledged

    async def _post(
        self,
        path: str,
        request: WireModel,
        response_model: type[ResponseModelT],
    ) -> ResponseModelT:
        url = self._endpoint(path)
        try:
            response = await self._http.post(
                url,
                json=request.model_dump(by_alias=True, exclude_none=True),
            )
        except httpx.HTTPError as exc:
            raise NetworkError(f"POST {url} failed: {exc}") from exc

        self._ensure_success(response)
        try:
            return response_model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise NetworkError(
                f"POST {url} returned an invalid payload: {exc}",
                status_code=response.status_code,
            ) from exc

    def _endpoint(self, path: str) -> str:
        return f"{self._base_url}{path}"

    def _ensure_success(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = (
            f"{response.request.method} {response.request.url} failed: "
            f"{response.status_code} {self._detail_from_response(response)}"
        )
        error_type = _STATUS_ERRORS.get(response.status_code)
        if error_type is None:
            raise NetworkError(message, status_code=response.status_code)
        raise error_type(message)

    def _detail_from_response(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            text = response.text.strip()
            return text or "<no response body>"

        if isinstance(payload, dict):
            for field_name in ("detail", "error"):
                detail = payload.get(field_name)
                if isinstance(detail, str):
                    return detail
        return str(payload)

    def _normalize_base_url(self, base_url: str) -> str:
        normalized = base_url.strip().rstrip("/")
        if not normalized:
            raise InvalidRequestError("Authorization service endpoint cannot be empty.")
        return normalized


__all__ = ["HttpAuthorizationClient"]
