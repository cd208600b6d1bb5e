"""
HealthPartner Backoffice — Identifier Generator
Opaque record ids and human-facing business references.
"""
import uuid
import random
import string

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def new_id() -> str:
    """Process-unique opaque id for any stored record."""
    return str(uuid.uuid4())


def affiliate_code(rng: random.Random = None) -> str:
    """Short public code handed to an affiliate on first KYC approval."""
    r = rng or random
    return "AFF-" + "".join(r.choice(_CODE_ALPHABET) for _ in range(4))


def reference(prefix: str, number: int, width: int = 6) -> str:
    """Zero-padded business reference, e.g. reference("CHG", 42) -> CHG-000042."""
    return f"{prefix}-{str(number).zfill(width)}"
