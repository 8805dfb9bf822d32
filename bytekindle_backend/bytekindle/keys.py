import re
from urllib.parse import quote

from .settings import STORY_KEY_PREFIX

# Same unreserved set as JavaScript's encodeURIComponent
_SAFE_CHARS = "-_.!~*'()"
_WHITESPACE = re.compile(r"\s+")

def normalize_subject(raw_subject: str) -> str:
    """Case- and spacing-insensitive form of a hero name: "  Brave   Bee " -> "brave_bee"."""
    return _WHITESPACE.sub("_", (raw_subject or "").strip().lower())

def derive_key(raw_subject: str, prefix: str = STORY_KEY_PREFIX) -> str:
    """Map a free-text hero name to its storage key.

    Total for any string input; an empty name maps to the bare prefix.
    """
    # Lone surrogates are encoded as-is rather than rejected
    encoded = quote(normalize_subject(raw_subject), safe=_SAFE_CHARS, errors="surrogatepass")
    return f"{prefix}{encoded}"
