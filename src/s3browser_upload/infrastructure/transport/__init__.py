"""Part transport adapters."""

from s3browser_upload.infrastructure.transport.http_part_transporter import HttpPartTransporter

__all__ = ["HttpPartTransporter"]
