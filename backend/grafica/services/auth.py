"""
Local authentication helpers: password hashing and identifier normalization.
"""
import re

from passlib.context import CryptContext

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Salted bcrypt hash; the salt is embedded in the returned string."""
    return pwd_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return pwd_ctx.verify(password, hashed)
    except (ValueError, TypeError):
        # not a hash this context recognizes
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_phone(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def is_phone_identifier(ident: str) -> bool:
    """An identifier is a phone when it has digits and no '@'."""
    return bool(re.search(r"\d", ident or "")) and "@" not in (ident or "")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(normalize_email(email)))


def is_valid_phone(phone: str) -> bool:
    return 10 <= len(normalize_phone(phone)) <= 12


def is_valid_password(password: str) -> bool:
    return len(password or "") >= 6
