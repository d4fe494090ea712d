"""
Exceptions raised while issuing and verifying certificates.
"""


class CertifyError(Exception):
    """Base class for every error raised by the certify package."""


class ConfigurationError(CertifyError):
    """The application was started with settings it cannot run with."""


class ValidationError(CertifyError):
    """Issuance input was rejected before anything was generated or stored."""


class MalformedCertificateId(CertifyError):
    """A certificate ID does not follow the identifier schema."""


class DuplicateCertificateError(CertifyError):
    """A certificate ID is already present in the store."""

    def __init__(self, cert_id):
        super().__init__(f"Certificate ID already issued: {cert_id}")
        self.cert_id = cert_id


class IssuanceError(CertifyError):
    """Issuance failed after validation (for example, repeated ID collisions)."""


class CertificateRenderError(CertifyError):
    """The PDF credential could not be produced."""
