"""Services module."""

from app.services.certificate_client import CertificateClient
from app.services.certificate_service import (
    CertificateService,
    get_certificate_service,
    shutdown_certificate_service,
)

__all__ = [
    "CertificateClient",
    "CertificateService",
    "get_certificate_service",
    "shutdown_certificate_service",
]
