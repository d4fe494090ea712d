from concurrent.futures import ThreadPoolExecutor
from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from certify.database import CertificateRecord, build_verification_url
from certify.errors import DuplicateCertificateError


def test_put_then_get_returns_equal_record(store, make_record):
    record = make_record("LC-v1-20260301-000000000001")
    store.put(record.certificate_id, record)

    assert store.get(record.certificate_id) == record
    assert len(store) == 1
    assert record.certificate_id in store


def test_get_unknown_id_is_not_found(store):
    assert store.get("LC-v1-20260301-ffffffffffff") is None
    assert store.get("") is None
    assert len(store) == 0


def test_put_never_overwrites(store, make_record):
    original = make_record("LC-v1-20260301-000000000001", name="Jane Doe")
    store.put(original.certificate_id, original)

    with pytest.raises(DuplicateCertificateError):
        store.put(original.certificate_id, make_record(original.certificate_id, name="Mallory"))

    assert store.get(original.certificate_id).learner_name == "Jane Doe"


def test_put_rejects_mismatched_key(store, make_record):
    with pytest.raises(ValueError):
        store.put("LC-v1-20260301-000000000002", make_record("LC-v1-20260301-000000000001"))
    assert len(store) == 0


def test_concurrent_puts_of_distinct_ids(store, make_record):
    records = [make_record(f"LC-v1-20260301-{i:012x}") for i in range(1000)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda r: store.put(r.certificate_id, r), records))

    assert len(store) == 1000
    assert all(store.get(r.certificate_id) == r for r in records)


def test_racing_puts_of_one_id_store_exactly_once(store, make_record):
    cert_id = "LC-v1-20260301-00000000abcd"
    candidates = [make_record(cert_id, name=f"Learner {i}") for i in range(20)]

    def attempt(record):
        try:
            store.put(cert_id, record)
            return True
        except DuplicateCertificateError:
            return False

    with ThreadPoolExecutor(max_workers=10) as pool:
        outcomes = list(pool.map(attempt, candidates))

    assert outcomes.count(True) == 1
    assert len(store) == 1


class TestCertificateRecord:

    def test_build_derives_url(self, make_record):
        record = make_record("LC-v1-20260301-000000000001")

        assert record.verification_url == "https://certs.example.com/api/verify/LC-v1-20260301-000000000001"
        assert record.created_at.tzinfo is not None

    def test_is_immutable(self, make_record):
        record = make_record("LC-v1-20260301-000000000001")
        with pytest.raises(FrozenInstanceError):
            record.learner_name = "Someone Else"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_requires_learner_name(self, make_record, name):
        with pytest.raises(ValueError):
            make_record("LC-v1-20260301-000000000001", name=name)

    def test_expiry_must_follow_issue(self, make_record):
        with pytest.raises(ValueError):
            make_record("LC-v1-20260301-000000000001", expiry_date=date(2026, 3, 1))

    def test_to_dict(self, make_record):
        data = make_record("LC-v1-20260301-000000000001", expiry_date=None).to_dict()

        assert data["certificateId"] == "LC-v1-20260301-000000000001"
        assert data["learnerName"] == "Jane Doe"
        assert data["issueDate"] == "2026-03-01"
        assert data["expiryDate"] is None
        assert data["trainingPartner"] == "Learning Curve"


def test_verification_url_trailing_slash():
    assert build_verification_url("http://localhost:5001/", "X") == "http://localhost:5001/api/verify/X"
