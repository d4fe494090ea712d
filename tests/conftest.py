from datetime import date
from io import BytesIO

import pytest
from PIL import Image

from app import create_app
from certify.crypto_utils import CertificateIdGenerator
from certify.database import CertificateRecord, CertificateStore


SECRET = "test-signing-secret"
BASE_URL = "https://certs.example.com"


@pytest.fixture
def photo_bytes():
    buf = BytesIO()
    Image.new("RGB", (96, 72), (30, 60, 120)).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def generator():
    return CertificateIdGenerator(secret=SECRET, prefix="LC")


@pytest.fixture
def store():
    return CertificateStore()


@pytest.fixture
def make_record():
    def _make(cert_id, name="Jane Doe", expiry_date=date(2028, 3, 1)):
        return CertificateRecord.build(
            certificate_id=cert_id,
            learner_name=name,
            issue_date=date(2026, 3, 1),
            expiry_date=expiry_date,
            training_partner="Learning Curve",
            base_url=BASE_URL,
            certificate_name="Learning Curve Certified Exam Passed",
        )
    return _make


@pytest.fixture
def app(store):
    return create_app(
        {"TESTING": True, "CERT_SECRET_KEY": SECRET, "BASE_URL": BASE_URL},
        store=store,
    )


@pytest.fixture
def client(app):
    return app.test_client()
