import re
import secrets
import string
import unicodedata

MAX_BASE_LENGTH = 50
SUFFIX_LENGTH = 6
SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9_-]")
_HYPHENS = re.compile(r"-{2,}")


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def generate_slug(title: str) -> str:
    """
    Build a URL-safe public address from a form title.

    "Customer Feedback" -> "customer-feedback-a1b2c3"

    The random suffix keeps slugs apart without a storage-level unique
    constraint, since every version of a form shares its slug.
    """
    ascii_title = (
        unicodedata.normalize("NFKD", title or "")
        .encode("ascii", "ignore")
        .decode("ascii")
        .lower()
    )
    base = _WHITESPACE.sub("-", ascii_title.strip())
    base = _DISALLOWED.sub("", base)
    base = _HYPHENS.sub("-", base).strip("-")
    base = base[:MAX_BASE_LENGTH].rstrip("-")

    return f"{base or 'form'}-{random_suffix()}"
