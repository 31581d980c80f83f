"""
Tracking codes, tracking URLs and RUT helpers.
"""
import io
import re
import secrets
from typing import Optional

import qrcode
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Rental


TRACKING_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def clean_rut(rut: str) -> str:
    return re.sub(r"[^0-9kK]", "", rut or "").upper()


def rut_verifier_digit(body: str) -> str:
    """Modulo 11 verifier digit for a RUT body"""
    digits = re.sub(r"[^0-9]", "", body or "")
    if not digits:
        return ""
    multipliers = [2, 3, 4, 5, 6, 7]
    total = 0
    for i, d in enumerate(reversed(digits)):
        total += int(d) * multipliers[i % 6]
    result = 11 - (total % 11)
    if result == 11:
        return "0"
    if result == 10:
        return "K"
    return str(result)


def is_valid_rut(rut: str) -> bool:
    cleaned = clean_rut(rut)
    if len(cleaned) < 2:
        return False
    body, dv = cleaned[:-1], cleaned[-1]
    if not body.isdigit():
        return False
    return rut_verifier_digit(body) == dv


def format_rut(rut: str) -> str:
    """'123456785' -> '12.345.678-5'"""
    cleaned = clean_rut(rut)
    if len(cleaned) <= 1:
        return cleaned
    body, dv = cleaned[:-1], cleaned[-1]
    groups = []
    while body:
        groups.insert(0, body[-3:])
        body = body[:-3]
    return f"{'.'.join(groups)}-{dv}"


def rut_digits(rut: Optional[str]) -> str:
    """Last four digits of the RUT body: '16.220.939-6' -> '0939'"""
    if not rut:
        return "0000"
    cleaned = clean_rut(rut)
    body = cleaned[:-1]
    return body[-4:].rjust(4, "0")


def _random_chars(length: int) -> str:
    return "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))


def generate_tracking_code(rut: Optional[str]) -> str:
    return f"{rut_digits(rut)}{_random_chars(5)}"


def generate_tracking_token() -> str:
    return _random_chars(5)


def generate_unique_tracking_code(db: Session, rut: Optional[str]) -> str:
    code = generate_tracking_code(rut)
    while db.query(Rental.id).filter(Rental.tracking_code == code).first():
        code = generate_tracking_code(rut)
    return code


def tracking_url(tracking_code: str, tracking_token: str) -> str:
    base = settings.public_base_url.rstrip("/")
    return f"{base}/track/{tracking_code}/{tracking_token}"


def find_rental_by_tracking(db: Session, tracking_code: str, tracking_token: str) -> Optional[Rental]:
    rental = db.query(Rental).filter(Rental.tracking_code == tracking_code.upper()).first()
    if not rental or not secrets.compare_digest(rental.tracking_token, tracking_token.upper()):
        return None
    return rental


def tracking_qr_png(url: str) -> bytes:
    img = qrcode.make(url)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
