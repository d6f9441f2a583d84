"""ID generation for secgate rows."""

import uuid


def generate_id(prefix: str) -> str:
    """Return ``prefix`` followed by 16 hex characters, e.g. ``scan_3f2a...``."""
    return f"{prefix}{uuid.uuid4().hex[:16]}"
