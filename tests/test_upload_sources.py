from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from s3browser_upload.infrastructure.sources import BytesUploadSource, FileUploadSource


def test_file_source_reads_ranges_and_fingerprint(tmp_path: Path) -> None:
    path = tmp_path / "report.pdf"
    path.write_bytes(b"0123456789abcdef")
    source = FileUploadSource(path)

    assert source.name == "report.pdf"
    assert source.size == 16
    assert source.content_type == "application/pdf"
    assert source.last_modified == path.stat().st_mtime
    assert asyncio.run(source.read_range(10, 16)) == b"abcdef"


def test_file_source_rejects_out_of_bounds_range(tmp_path: Path) -> None:
    path = tmp_path / "blob"
    path.write_bytes(b"abc")
    source = FileUploadSource(path)

    assert source.content_type == "application/octet-stream"
    with pytest.raises(ValueError):
        asyncio.run(source.read_range(0, 4))


def test_bytes_source_uses_explicit_content_type() -> None:
    source = BytesUploadSource("data.json", b"{}", content_type="application/x-custom")

    assert source.size == 2
    assert source.content_type == "application/x-custom"
    assert source.last_modified is None
    assert asyncio.run(source.read_range(0, 2)) == b"{}"
