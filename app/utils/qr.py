import os
import qrcode
from app.core.config import settings


QR_CODE_DIR = settings.static_dir / "qrcodes"
STATIC_URL_PREFIX = "/static/qrcodes"


def verification_url(public_id: str) -> str:
    """Frontend page a scanned QR code opens for a passport or project."""
    return f"{settings.frontend_url.rstrip('/')}/verify/{public_id}"


def generate_and_save_qr(data: str, filename: str) -> str:
    """
    Generates a QR code for the given data, saves it to the filesystem,
    and returns the relative URL path.
    """
    os.makedirs(QR_CODE_DIR, exist_ok=True)

    # High error correction so printed labels survive site conditions
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_H,
        box_size=10,
        border=1,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    file_path = QR_CODE_DIR / f"{filename}.png"
    img.save(file_path)

    return f"{settings.public_url}{STATIC_URL_PREFIX}/{filename}.png"
