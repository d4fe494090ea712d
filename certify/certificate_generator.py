import logging
import math
import random
from io import BytesIO

import fitz
from PIL import Image, ImageOps

from certify.errors import CertificateRenderError
from certify.qr_generator import qr_png_for_rect


logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4-l")
MARGIN = 45

FONT = "helv"
FONT_BOLD = "hebo"

INK = (0.07, 0.07, 0.07)
SLATE = (0.12, 0.16, 0.22)
MUTED = (0.28, 0.33, 0.41)
BRAND_RED = (0.88, 0.11, 0.28)
BANNER_BLUE = (0.40, 0.64, 0.85)
WHITE = (1, 1, 1)


def format_date(value):
    """ 2026-10-06 → "October 06, 2026" """
    return value.strftime("%B %d, %Y")


def _fit_textbox(page, rect, text, font_size, font_name=FONT, color=INK, align=fitz.TEXT_ALIGN_LEFT):
    """
    Insert `text` into `rect`, shrinking the font until it fits.

    insert_textbox writes nothing and returns a negative number when the text
    overflows, so it is safe to retry at a smaller size.
    """
    current_size = font_size
    for _ in range(30):
        spare = page.insert_textbox(
            rect, text, fontsize=current_size, fontname=font_name, color=color, align=align
        )
        if spare >= 0:
            return current_size
        current_size *= 0.93
    raise CertificateRenderError(f"Text does not fit on the certificate: {text[:40]!r}")


def _centered_text(page, center_x, baseline, text, font_size, font_name=FONT, color=INK):
    width = fitz.get_text_length(text, fontname=font_name, fontsize=font_size)
    page.insert_text((center_x - width / 2, baseline), text, fontsize=font_size, fontname=font_name, color=color)


def _prepare_photo(photo_bytes):
    """
    Re-encode the uploaded exam photo as PNG, upright and in RGB, so that any
    format Pillow reads can be embedded.
    """
    with Image.open(BytesIO(photo_bytes)) as img:
        img = ImageOps.exif_transpose(img).convert("RGB")
        buf = BytesIO()
        img.save(buf, format="PNG")
    return buf.getvalue()


def _draw_logo(page, x, y, partner):
    """Wordmark: a boxed trend line followed by the partner name."""
    page.draw_rect(fitz.Rect(x, y, x + 32, y + 24), color=BRAND_RED, width=1.2)
    page.draw_polyline(
        [fitz.Point(x + 4, y + 17), fitz.Point(x + 12, y + 11),
         fitz.Point(x + 20, y + 15), fitz.Point(x + 28, y + 7)],
        color=BRAND_RED,
        width=1.2,
    )
    page.insert_text((x + 44, y + 20), partner.lower(), fontsize=30, fontname=FONT_BOLD, color=INK)
    page.insert_text((x + 48, y + 46), "Certified", fontsize=17, fontname=FONT, color=MUTED)


def _signature_points(seed):
    """A wavy stroke standing in for a handwritten signature."""
    points = [fitz.Point(500, 470)]
    for i in range(7):
        y = 462 + math.sin(seed + i * 1.4) * 12 + (-4 if i % 2 else 4)
        points.append(fitz.Point(510 + i * 20, y))
    return points


def generate_certificate(record, photo_bytes, signatory, signatory_title):
    """
    Render one A4-landscape credential for `record` and return the PDF bytes.

    record:           CertificateRecord (ID, learner, dates, partner, URL)
    photo_bytes:      the exam photo, any format Pillow can read
    signatory:        name printed under the signature line
    signatory_title:  the signatory's role
    """
    doc = None
    try:
        doc = fitz.open()
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)

        # ── Frame and header ──
        page.draw_rect(fitz.Rect(25, 25, PAGE_WIDTH - 25, PAGE_HEIGHT - 25), color=SLATE, width=2)
        _draw_logo(page, 75, 45, record.training_partner)

        # ── Learner and achievement ──
        _fit_textbox(
            page, fitz.Rect(MARGIN, 120, PAGE_WIDTH - MARGIN, 160),
            record.learner_name, 24, color=SLATE, align=fitz.TEXT_ALIGN_CENTER,
        )
        _fit_textbox(
            page, fitz.Rect(MARGIN, 168, PAGE_WIDTH - MARGIN, 230),
            "has successfully passed the requirements to obtain the following "
            f"{record.training_partner} Certification:",
            15, color=SLATE, align=fitz.TEXT_ALIGN_CENTER,
        )

        page.draw_rect(fitz.Rect(25, 240, PAGE_WIDTH - 25, 314), color=None, fill=BANNER_BLUE)
        _fit_textbox(
            page, fitz.Rect(MARGIN, 258, PAGE_WIDTH - MARGIN, 310),
            record.certificate_name, 33, font_name=FONT_BOLD, color=WHITE,
            align=fitz.TEXT_ALIGN_CENTER,
        )

        # ── Dates ──
        expiry_text = format_date(record.expiry_date) if record.expiry_date else "No Expiry"
        page.insert_text((75, 380), "Date of Issue:", fontsize=17, fontname=FONT_BOLD, color=INK)
        page.insert_text((75, 405), format_date(record.issue_date), fontsize=17, fontname=FONT, color=INK)
        page.insert_text((75, 445), "Date of Expiry:", fontsize=17, fontname=FONT_BOLD, color=INK)
        page.insert_text((75, 470), expiry_text, fontsize=17, fontname=FONT, color=INK)

        # ── Exam photo ──
        _centered_text(page, 390, 368, "Exam Image", 12, font_name=FONT_BOLD)
        page.draw_rect(fitz.Rect(320, 375, 460, 515), color=(0.39, 0.45, 0.55), width=1)
        page.insert_image(
            fitz.Rect(325, 380, 455, 510), stream=_prepare_photo(photo_bytes), keep_proportion=True
        )

        # ── Signature block ──
        page.draw_polyline(_signature_points(random.uniform(0, 10)), color=(0.2, 0.25, 0.33), width=2)
        page.draw_line(fitz.Point(500, 496), fitz.Point(735, 496), color=INK, width=1)
        page.insert_text((500, 512), signatory, fontsize=12, fontname=FONT, color=INK)
        page.insert_text((500, 527), signatory_title, fontsize=10, fontname=FONT, color=INK)
        page.insert_text(
            (500, 541), f"Authorized Signatory - {record.training_partner}",
            fontsize=10, fontname=FONT, color=INK,
        )
        page.insert_text(
            (500, 555), f"Certificate ID: {record.certificate_id}",
            fontsize=8, fontname=FONT, color=INK,
        )

        # ── QR code linking to the verification endpoint ──
        qr_rect = fitz.Rect(680, 365, 760, 445)
        page.insert_image(qr_rect, stream=qr_png_for_rect(record.verification_url, qr_rect))
        _centered_text(page, 720, 457, "Scan to verify", 9, color=MUTED)

        doc.set_metadata({
            "title": f"{record.certificate_name} - {record.learner_name}",
            "author": record.training_partner,
            "subject": record.certificate_id,
        })
        return doc.tobytes(garbage=3, deflate=True)

    except CertificateRenderError:
        raise
    except Exception as e:
        logger.exception("Rendering failed for certificate %s", record.certificate_id)
        raise CertificateRenderError(f"Certificate generation failed: {e}") from e
    finally:
        if doc is not None:
            doc.close()
