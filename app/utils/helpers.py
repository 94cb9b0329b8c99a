"""Small shared helpers."""

import re
import unicodedata
from collections.abc import Mapping
from typing import Any


def slugify(text: str) -> str:
    """URL-safe lowercase slug: "The Forest Hiker" -> "the-forest-hiker"."""
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")


def filter_obj(obj: Mapping[str, Any], *allowed_fields: str) -> dict[str, Any]:
    """Keep only the allowed keys."""
    return {key: value for key, value in obj.items() if key in allowed_fields}
