import os


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Settings read from the environment when the app is created."""

    # Secret key for signing certificate IDs. Required when signing is on;
    # create_app refuses to start without it.
    CERT_SECRET_KEY = os.environ.get("CERT_SECRET_KEY", "")
    SIGNED_CERTIFICATE_IDS = _env_flag("SIGNED_CERTIFICATE_IDS", True)
    CERT_ID_PREFIX = os.environ.get("CERT_ID_PREFIX", "LC")

    # Base URL for verification links. Empty means "use the request's host",
    # which is wrong behind a proxy, so set it when deployed.
    BASE_URL = os.environ.get("BASE_URL", "")

    TRAINING_PARTNER = os.environ.get("TRAINING_PARTNER", "Learning Curve")
    AUTHORIZED_SIGNATORY = os.environ.get("AUTHORIZED_SIGNATORY", "Jody Soeiro de Faria")
    SIGNATORY_TITLE = os.environ.get("SIGNATORY_TITLE", "AVP, Curriculum & User Success")
    CERTIFICATE_NAME = os.environ.get("CERTIFICATE_NAME", "Learning Curve Certified Exam Passed")

    # Years until a certificate expires; 0 issues certificates with no expiry.
    VALIDITY_YEARS = int(os.environ.get("VALIDITY_YEARS", "2"))

    # Upper bound on the multipart request (photo + fields)
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_PHOTO_BYTES", str(10 * 1024 * 1024)))

    PORT = int(os.environ.get("PORT", "5001"))
