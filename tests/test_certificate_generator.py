from io import BytesIO

import fitz
import pytest
from PIL import Image

from certify.certificate_generator import format_date, generate_certificate
from certify.errors import CertificateRenderError
from certify.qr_generator import generate_qr_code, qr_png_for_rect


def render(record, photo):
    return generate_certificate(record, photo, "Jody Soeiro de Faria", "AVP, Curriculum & User Success")


def page_text(pdf):
    with fitz.open(stream=pdf, filetype="pdf") as doc:
        assert doc.page_count == 1
        page = doc[0]
        assert page.rect.width > page.rect.height  # landscape
        return page.get_text(), len(page.get_images())


def test_pdf_contains_record_details(make_record, photo_bytes):
    record = make_record("LC-v1-20260301-0123456789ab-0123456789abcdef")
    text, image_count = page_text(render(record, photo_bytes))

    assert "Jane Doe" in text
    assert record.certificate_id in text
    assert "March 01, 2026" in text
    assert "March 01, 2028" in text
    assert "Certified Exam Passed" in text
    assert "Scan to verify" in text
    assert "Exam Image" in text
    assert image_count == 2  # exam photo and QR code


def test_no_expiry_is_printed(make_record, photo_bytes):
    text, _ = page_text(render(make_record("LC-v1-20260301-0123456789ab", expiry_date=None), photo_bytes))
    assert "No Expiry" in text


def test_png_with_alpha_is_accepted(make_record):
    buf = BytesIO()
    Image.new("RGBA", (40, 40), (255, 0, 0, 128)).save(buf, format="PNG")

    text, image_count = page_text(render(make_record("LC-v1-20260301-0123456789ab"), buf.getvalue()))
    assert image_count == 2


def test_long_name_is_shrunk_to_fit(make_record, photo_bytes):
    name = "Maximiliana Alexandrina Konstantinopoulou-Vanderbilt de la Fuente"
    text, _ = page_text(render(make_record("LC-v1-20260301-0123456789ab", name=name), photo_bytes))
    assert "Maximiliana" in text


def test_unreadable_photo_raises_render_error(make_record):
    with pytest.raises(CertificateRenderError):
        render(make_record("LC-v1-20260301-0123456789ab"), b"not an image")


def test_format_date(make_record):
    assert format_date(make_record("X").issue_date) == "March 01, 2026"


def test_qr_code_png_for_rect():
    png = qr_png_for_rect("https://certs.example.com/api/verify/LC-v1", fitz.Rect(0, 0, 72, 72), dpi=150)

    assert png.startswith(b"\x89PNG")
    with Image.open(BytesIO(png)) as img:
        assert img.size[0] == img.size[1]
        assert img.size[0] >= 150


def test_qr_modules_are_not_resampled():
    qr_image = generate_qr_code("https://certs.example.com/api/verify/LC-v1", width_pt=80, dpi=200)

    assert qr_image.pixel_size % qr_image.box_size == 0
    assert qr_image.pixel_size >= 80 / 72 * 200
    assert qr_image.border == 2
