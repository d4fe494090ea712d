"""
Certificate ID generation and verification.

IDs follow a tagged, versioned schema:

    <PREFIX>-v<VERSION>-<YYYYMMDD>-<RANDOM>[-<SIGNATURE>]

    PREFIX     uppercase letters/digits, set per deployment (e.g. "LC")
    VERSION    schema version, currently 1
    YYYYMMDD   UTC date the ID was minted
    RANDOM     12 lowercase hex chars from the secrets module
    SIGNATURE  signed IDs only: first 16 hex chars of
               HMAC-SHA256(secret, "<PREFIX>-v<VERSION>-<YYYYMMDD>-<RANDOM>")

Example:  LC-v1-20261016-3f9a0c12be47-8d1e4b7a90c2f365
"""
import hashlib
import hmac
import re
import secrets
from collections import namedtuple
from datetime import datetime, timezone

from certify.errors import ConfigurationError, MalformedCertificateId


ID_VERSION = 1
RANDOM_HEX_CHARS = 12
SIGNATURE_HEX_CHARS = 16

_PREFIX_RE = re.compile(r"[A-Z0-9]{1,16}")
_ID_RE = re.compile(
    r"(?P<prefix>[A-Z0-9]{1,16})"
    r"-v(?P<version>[1-9][0-9]*)"
    r"-(?P<date>[0-9]{8})"
    rf"-(?P<random>[0-9a-f]{{{RANDOM_HEX_CHARS}}})"
    rf"(?:-(?P<signature>[0-9a-f]{{{SIGNATURE_HEX_CHARS}}}))?"
)

CertificateIdParts = namedtuple(
    "CertificateIdParts", ["prefix", "version", "date", "random", "signature"]
)


def parse_certificate_id(cert_id):
    """
    Split a certificate ID into its fields.

    Returns a CertificateIdParts with `date` as a datetime.date and
    `signature` set to None for unsigned IDs.
    Raises MalformedCertificateId if the string does not follow the schema.
    """
    if not isinstance(cert_id, str):
        raise MalformedCertificateId("Certificate ID must be a string")

    match = _ID_RE.fullmatch(cert_id)
    if not match:
        raise MalformedCertificateId(f"Not a certificate ID: {cert_id!r}")

    version = int(match.group("version"))
    if version != ID_VERSION:
        raise MalformedCertificateId(f"Unsupported certificate ID version: {version}")

    try:
        issued_on = datetime.strptime(match.group("date"), "%Y%m%d").date()
    except ValueError:
        raise MalformedCertificateId(f"Invalid date in certificate ID: {cert_id!r}")

    return CertificateIdParts(
        prefix=match.group("prefix"),
        version=version,
        date=issued_on,
        random=match.group("random"),
        signature=match.group("signature"),
    )


def _payload(prefix, version, issued_on, random_part):
    return f"{prefix}-v{version}-{issued_on:%Y%m%d}-{random_part}"


class CertificateIdGenerator:
    """
    Mints certificate IDs and checks IDs presented for verification.

    With signed=True every ID carries a truncated HMAC over its other fields,
    so an ID cannot be forged without the server-side secret. With
    signed=False IDs are random only and verification relies on the store.
    """

    def __init__(self, secret=None, prefix="LC", signed=True):
        if not prefix or not _PREFIX_RE.fullmatch(prefix):
            raise ConfigurationError(
                f"Certificate ID prefix must be 1-16 uppercase letters or digits, got {prefix!r}"
            )
        if signed and not secret:
            raise ConfigurationError(
                "CERT_SECRET_KEY must be set when signed certificate IDs are enabled"
            )

        self.prefix = prefix
        self.signed = signed
        self._key = secret.encode("utf-8") if secret else None

    def compute_signature(self, payload):
        """Truncated HMAC-SHA256 of `payload` under the server secret."""
        if self._key is None:
            raise ConfigurationError("No signing secret configured")
        digest = hmac.new(self._key, payload.encode("utf-8"), hashlib.sha256).hexdigest()
        return digest[:SIGNATURE_HEX_CHARS]

    def generate(self, now=None):
        """
        Mint a new certificate ID.

        `now` may be passed to pin the date component (tests); it defaults to
        the current UTC time.
        """
        now = now or datetime.now(timezone.utc)
        random_part = secrets.token_hex(RANDOM_HEX_CHARS // 2)
        payload = _payload(self.prefix, ID_VERSION, now.date(), random_part)

        if not self.signed:
            return payload
        return f"{payload}-{self.compute_signature(payload)}"

    def verify(self, cert_id):
        """
        True if `cert_id` is a well-formed ID this generator could have issued.

        Malformed input, a foreign prefix, a missing or wrong signature all
        give False. Store membership is checked separately.
        """
        try:
            parts = parse_certificate_id(cert_id)
        except MalformedCertificateId:
            return False

        if parts.prefix != self.prefix:
            return False

        if not self.signed:
            return parts.signature is None
        if parts.signature is None:
            return False

        # signed payload is everything before the final "-<SIGNATURE>"
        payload = cert_id[: -(SIGNATURE_HEX_CHARS + 1)]
        expected = self.compute_signature(payload)
        return hmac.compare_digest(parts.signature, expected)
