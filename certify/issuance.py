"""
Issuing a certificate: validate the request, mint an ID, render the PDF and
record the certificate so it can be verified later.

A record is stored only after its PDF has rendered. If rendering fails nothing
is stored, so every ID that verifies belongs to a certificate that was
actually delivered.
"""
import logging
from collections import namedtuple
from datetime import date, datetime, timezone
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from certify.database import CertificateRecord
from certify.errors import DuplicateCertificateError, IssuanceError, ValidationError


logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 3
MAX_NAME_LENGTH = 120
# 25 megapixels; larger photos are refused before they are decoded
MAX_PHOTO_PIXELS = 25_000_000
NO_EXPIRY_VALUES = ("never", "none", "no-expiry")

IssuedCertificate = namedtuple("IssuedCertificate", ["record", "pdf"])


def add_years(start, years):
    """Same calendar day `years` later; 29 February falls back to the 28th."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def validate_name(name):
    name = (name or "").strip()
    if not name:
        raise ValidationError("Learner name is required.")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Learner name must be at most {MAX_NAME_LENGTH} characters.")
    return name


def validate_photo(photo):
    """Reject a missing, empty, oversized or undecodable exam image."""
    if not photo:
        raise ValidationError("Exam image is required.")
    try:
        with Image.open(BytesIO(photo)) as img:
            width, height = img.size
            if width * height > MAX_PHOTO_PIXELS:
                raise ValidationError("Exam image is too large.")
            img.verify()
    except Image.DecompressionBombError:
        raise ValidationError("Exam image is too large.")
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise ValidationError("Exam image could not be read.")
    return photo


def resolve_expiry(expiry, issue_date, validity_years):
    """
    Work out the expiry date for a new certificate.

    expiry:  None/"" → issue_date + validity_years (no expiry when that is 0)
             "never" / "none" / "no-expiry" → no expiry
             "YYYY-MM-DD" → that date, which must be after issue_date
    """
    expiry = (expiry or "").strip()
    if not expiry:
        return add_years(issue_date, validity_years) if validity_years > 0 else None
    if expiry.lower() in NO_EXPIRY_VALUES:
        return None

    try:
        expiry_date = date.fromisoformat(expiry)
    except ValueError:
        raise ValidationError("Expiry date must be in YYYY-MM-DD format.")
    if expiry_date <= issue_date:
        raise ValidationError("Expiry date must be after the issue date.")
    return expiry_date


def issue_certificate(store, generator, renderer, *, name, photo, training_partner,
                      base_url, certificate_name, expiry=None, validity_years=2, now=None):
    """
    Issue one certificate and return IssuedCertificate(record, pdf).

    store:      CertificateStore that receives the record
    generator:  CertificateIdGenerator
    renderer:   callable(record, photo_bytes) → PDF bytes

    Raises ValidationError (nothing generated or stored), CertificateRenderError
    (nothing stored) or IssuanceError when no unused ID could be minted.
    """
    learner_name = validate_name(name)
    photo = validate_photo(photo)
    now = now or datetime.now(timezone.utc)
    issue_date = now.date()
    expiry_date = resolve_expiry(expiry, issue_date, validity_years)
    certificate_name = (certificate_name or "").strip()
    if not certificate_name:
        raise ValidationError("Certificate name is required.")

    for attempt in range(1, MAX_ID_ATTEMPTS + 1):
        cert_id = generator.generate(now=now)
        if cert_id in store:
            logger.warning("Certificate ID collision on attempt %d: %s", attempt, cert_id)
            continue

        record = CertificateRecord.build(
            certificate_id=cert_id,
            learner_name=learner_name,
            issue_date=issue_date,
            expiry_date=expiry_date,
            training_partner=training_partner,
            base_url=base_url,
            certificate_name=certificate_name,
        )
        pdf = renderer(record, photo)

        try:
            store.put(cert_id, record)
        except DuplicateCertificateError:
            # another request stored the same ID while this PDF was rendering
            logger.warning("Certificate ID taken during rendering on attempt %d: %s", attempt, cert_id)
            continue

        logger.info("Issued certificate %s", cert_id)
        return IssuedCertificate(record=record, pdf=pdf)

    raise IssuanceError(f"Could not mint an unused certificate ID after {MAX_ID_ATTEMPTS} attempts")
