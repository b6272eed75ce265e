"""Resumable, concurrent multipart upload engine for S3-compatible buckets."""

__version__ = "0.1.0"

__all__ = ["__version__"]
