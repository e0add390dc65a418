"""Emoji name normalization.

Clients send the same unicode emoji with and without the emoji variation
selector, so reaction records are keyed on the normalized form.
"""

VARIATION_SELECTOR_16 = "\ufe0f"


def normalize_emoji_name(s: str) -> str:
    """
    Normalize a unicode emoji name for keying reaction records.
    - strip leading/trailing whitespace
    - drop U+FE0F variation selectors
    """
    return s.strip().replace(VARIATION_SELECTOR_16, "")
