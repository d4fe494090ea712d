"""
QR codes that link a printed certificate to its verification endpoint.
"""
import math
from io import BytesIO

import qrcode


QR_BORDER = 2


def generate_qr_code(verification_url, width_pt, dpi=200):
    """
    Build a QR code sized for a square of `width_pt` PDF points.

    The module size is chosen so the image comes out at least `dpi` across the
    target square without any resampling, keeping module edges sharp.

    Returns: PIL Image object
    """
    qr = qrcode.QRCode(
        version=None,  # smallest version that fits the URL
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        border=QR_BORDER,
    )
    qr.add_data(verification_url)
    qr.make(fit=True)

    target_pixels = width_pt / 72 * dpi
    qr.box_size = max(1, math.ceil(target_pixels / (qr.modules_count + 2 * QR_BORDER)))
    return qr.make_image(fill_color="black", back_color="white")


def qr_png_for_rect(verification_url, rect, dpi=200):
    """PNG bytes of the verification QR code for a fitz.Rect on the page."""
    buf = BytesIO()
    generate_qr_code(verification_url, rect.width, dpi=dpi).save(buf, format="PNG")
    return buf.getvalue()
