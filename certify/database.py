"""
In-memory store for issued certificates.

Records live for the lifetime of the process only; a restart forgets every
issued certificate.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from certify.errors import DuplicateCertificateError


logger = logging.getLogger(__name__)

VERIFY_PATH = "/api/verify/"


def build_verification_url(base_url, cert_id):
    """Public URL that resolves `cert_id` through the verification endpoint."""
    return f"{base_url.rstrip('/')}{VERIFY_PATH}{cert_id}"


@dataclass(frozen=True)
class CertificateRecord:
    """Metadata for one issued certificate. Immutable once built."""

    certificate_id: str
    learner_name: str
    certificate_name: str
    issue_date: object            # datetime.date
    expiry_date: object           # datetime.date, or None for no expiry
    training_partner: str
    verification_url: str
    created_at: datetime

    def __post_init__(self):
        if not self.certificate_id:
            raise ValueError("certificate_id must not be empty")
        if not self.learner_name or not self.learner_name.strip():
            raise ValueError("learner_name must not be empty")
        if self.expiry_date is not None and self.expiry_date <= self.issue_date:
            raise ValueError("expiry_date must be after issue_date")

    @classmethod
    def build(cls, certificate_id, learner_name, issue_date, expiry_date,
              training_partner, base_url, certificate_name):
        """Create a record, deriving the verification URL and creation time."""
        return cls(
            certificate_id=certificate_id,
            learner_name=learner_name.strip(),
            certificate_name=certificate_name,
            issue_date=issue_date,
            expiry_date=expiry_date,
            training_partner=training_partner,
            verification_url=build_verification_url(base_url, certificate_id),
            created_at=datetime.now(timezone.utc),
        )

    def to_dict(self):
        return {
            "certificateId": self.certificate_id,
            "learnerName": self.learner_name,
            "certificateName": self.certificate_name,
            "issueDate": self.issue_date.isoformat(),
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "trainingPartner": self.training_partner,
            "verificationUrl": self.verification_url,
            "createdAt": self.created_at.isoformat(),
        }


class CertificateStore:
    """
    Write-once map from certificate ID to CertificateRecord.

    Safe to share between request threads: a lock serializes access, so a
    reader never sees a half-inserted record and two racing inserts of the
    same ID cannot both succeed.
    """

    def __init__(self):
        self._records = {}
        self._lock = threading.Lock()

    def put(self, cert_id, record):
        """
        Insert `record` under `cert_id`.

        Raises DuplicateCertificateError if the ID is already stored; existing
        records are never overwritten.
        """
        if record.certificate_id != cert_id:
            raise ValueError(
                f"Record ID {record.certificate_id!r} does not match key {cert_id!r}"
            )

        with self._lock:
            if cert_id in self._records:
                raise DuplicateCertificateError(cert_id)
            self._records[cert_id] = record

        logger.debug("Stored certificate %s", cert_id)

    def get(self, cert_id):
        """Return the record for `cert_id`, or None if it was never issued."""
        with self._lock:
            return self._records.get(cert_id)

    def __contains__(self, cert_id):
        with self._lock:
            return cert_id in self._records

    def __len__(self):
        with self._lock:
            return len(self._records)
