"""Single-use upload authorization grants."""

from __future__ import annotations

from collections.abc import Mapping

from s3browser_upload.domain.errors import GrantAlreadyUsedError


class AuthorizationGrant:
    """Short-lived permission to upload exactly one part to a presigned URL.

    The URL can be read out once through `consume`; grants expire, so every
    upload attempt must request a new one.
    """

    __slots__ = ("_consumed", "_headers", "_part_number", "_url")

    def __init__(
        self,
        url: str,
        part_number: int,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._url = url
        self._part_number = part_number
        self._headers = dict(headers or {})
        self._consumed = False

    @property
    def part_number(self) -> int:
        return self._part_number

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def headers(self) -> dict[str, str]:
        """Headers the signature covers; they must accompany the PUT."""

        return dict(self._headers)

    def consume(self) -> str:
        """Return the upload URL and mark the grant as used."""

        if self._consumed:
            raise GrantAlreadyUsedError(
                f"Grant for part {self._part_number} was already used."
            )
        self._consumed = True
        return self._url

    def __repr__(self) -> str:
        # Presigned URLs carry credentials.
        state = "consumed" if self._consumed else "unused"
        return f"AuthorizationGrant(part_number={self._part_number}, {state})"


__all__ = ["AuthorizationGrant"]
