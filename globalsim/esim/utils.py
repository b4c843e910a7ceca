import base64
import io
import secrets

import qrcode

from globalsim.esim.constants import COUNTRY_PREFIXES

DIGITS = "0123456789"


def random_digits(n: int) -> str:
    return "".join(secrets.choice(DIGITS) for _ in range(n))


def generate_iccid() -> str:
    # 89 (telecom) + 44 (issuer country) + 16 digits
    return "8944" + random_digits(16)


def generate_msisdn(country: str, local_prefix: str = "") -> str:
    prefix = COUNTRY_PREFIXES.get(country, "+1")
    return prefix + local_prefix + random_digits(10 - len(local_prefix))


def generate_activation_code() -> str:
    return secrets.token_hex(13)


def lpa_activation_string(smdp_host: str, activation_code: str) -> str:
    return f"LPA:1${smdp_host}${activation_code}"


def qr_data_url(payload: str, box_size: int = 8, border: int = 2) -> str:
    """PNG QR code for `payload` as a data: URL."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
