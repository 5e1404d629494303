from __future__ import annotations

import re

TOKEN_PATTERN = re.compile(r"(token=)[^&\s'\"]+")


def redact_secrets(text: str) -> str:
    """Redact channel auth tokens from a string."""

    return TOKEN_PATTERN.sub(r"\1***", text)
