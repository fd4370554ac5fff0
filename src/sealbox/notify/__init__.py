"""Outbound notification collaborators for SealBox."""

from .mailer import SmtpMailer, build_upload_notification

__all__ = ["SmtpMailer", "build_upload_notification"]
