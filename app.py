import logging
from functools import partial
from io import BytesIO

from flask import Flask, current_app, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import Config
from certify.certificate_generator import generate_certificate
from certify.crypto_utils import CertificateIdGenerator
from certify.database import CertificateStore
from certify.errors import CertificateRenderError, IssuanceError, ValidationError
from certify.issuance import issue_certificate


def create_app(config=None, store=None, renderer=None):
    """
    Build the Flask app.

    config:    mapping applied over the environment defaults in config.Config
    store:     CertificateStore to use (a fresh one by default)
    renderer:  callable(record, photo_bytes) → PDF bytes (PyMuPDF by default)

    Raises ConfigurationError when signed IDs are enabled without a secret.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    # fails fast on a missing secret or a bad prefix
    app.extensions["certificate_ids"] = CertificateIdGenerator(
        secret=app.config["CERT_SECRET_KEY"],
        prefix=app.config["CERT_ID_PREFIX"],
        signed=app.config["SIGNED_CERTIFICATE_IDS"],
    )
    app.extensions["certificate_store"] = store if store is not None else CertificateStore()
    app.extensions["certificate_renderer"] = renderer or partial(
        generate_certificate,
        signatory=app.config["AUTHORIZED_SIGNATORY"],
        signatory_title=app.config["SIGNATORY_TITLE"],
    )

    # browser clients need to read the ID header off the PDF response
    CORS(app, expose_headers=["X-Certificate-Id", "Content-Disposition"])

    _register_routes(app)
    _register_error_handlers(app)

    app.logger.info(
        "Certificate service ready (prefix=%s, signed IDs=%s)",
        app.config["CERT_ID_PREFIX"],
        app.config["SIGNED_CERTIFICATE_IDS"],
    )
    return app


def _verification_base_url():
    return current_app.config["BASE_URL"] or request.host_url


# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────

def _register_routes(app):

    @app.route("/api/certificates", methods=["POST"])
    def issue():
        """
        Issue a certificate from a multipart form:
          name              learner's full name (required)
          photo             exam image file (required)
          certificate_name  title printed on the credential (optional)
          expiry_date       YYYY-MM-DD, or "never" (optional)
        """
        photo_file = request.files.get("photo")
        photo = photo_file.read() if photo_file else None

        try:
            issued = issue_certificate(
                current_app.extensions["certificate_store"],
                current_app.extensions["certificate_ids"],
                current_app.extensions["certificate_renderer"],
                name=request.form.get("name"),
                photo=photo,
                training_partner=current_app.config["TRAINING_PARTNER"],
                base_url=_verification_base_url(),
                certificate_name=request.form.get("certificate_name") or current_app.config["CERTIFICATE_NAME"],
                expiry=request.form.get("expiry_date"),
                validity_years=current_app.config["VALIDITY_YEARS"],
            )
        except ValidationError as ve:
            return jsonify({"error": str(ve)}), 400
        except (CertificateRenderError, IssuanceError) as e:
            current_app.logger.error("Certificate generation failed: %s", e)
            return jsonify({"error": "Failed to generate certificate PDF."}), 500

        cert_id = issued.record.certificate_id
        response = send_file(
            BytesIO(issued.pdf),
            mimetype="application/pdf",
            as_attachment=True,
            download_name=f"certificate-{cert_id}.pdf",
        )
        response.headers["X-Certificate-Id"] = cert_id
        return response

    @app.route("/api/verify/<path:cert_id>")
    def verify(cert_id):
        """Check whether a certificate ID was issued by this service."""
        if not current_app.extensions["certificate_ids"].verify(cert_id):
            current_app.logger.info("Rejected unrecognised certificate ID %r", cert_id[:80])
            return jsonify({"valid": False, "message": "Certificate ID is not recognised."}), 404

        record = current_app.extensions["certificate_store"].get(cert_id)
        if record is None:
            return jsonify({"valid": False, "message": "Certificate not found."}), 404

        return jsonify({
            "valid": True,
            "message": "Certificate is valid.",
            "certificate": record.to_dict(),
        })

    @app.route("/api/health")
    def health():
        return jsonify({
            "status": "ok",
            "issued": len(current_app.extensions["certificate_store"]),
        })


def _register_error_handlers(app):

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error."}), 500


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=False)
