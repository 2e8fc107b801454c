from __future__ import annotations

import json
import re
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


_GREEK_TO_LATIN = {
    "α": "a",
    "β": "v",
    "γ": "g",
    "δ": "d",
    "ε": "e",
    "ζ": "z",
    "η": "i",
    "θ": "th",
    "ι": "i",
    "κ": "k",
    "λ": "l",
    "μ": "m",
    "ν": "n",
    "ξ": "x",
    "ο": "o",
    "π": "p",
    "ρ": "r",
    "σ": "s",
    "ς": "s",
    "τ": "t",
    "υ": "y",
    "φ": "f",
    "χ": "ch",
    "ψ": "ps",
    "ω": "o",
}
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def _strip_marks(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def transliterate_greek(text: str) -> str:
    """
    Strip accents/diaeresis, lowercase, and map Greek letters to Latin.
    Anything that is not Greek passes through unchanged.
    """
    folded = _strip_marks(_strip_marks(text or "").lower())
    return "".join(_GREEK_TO_LATIN.get(ch, ch) for ch in folded)


def slugify(text: str) -> str:
    text = transliterate_greek(text or "")
    text = _NON_SLUG_RE.sub("-", text)
    return text.strip("-") or "unknown"


def normalize_genre(genre: str) -> str:
    return slugify((genre or "").lower())


def title_from_slug(slug: str) -> str:
    # Display only; casing and accents of the source text are gone.
    return " ".join(part[:1].upper() + part[1:] for part in (slug or "").split("-"))


def _collation_class(ch: str) -> int:
    if ch.isspace() or not ch.isalnum():
        return 0
    if ch.isdigit():
        return 1
    if "Ͱ" <= ch <= "Ͽ":
        return 2
    if "a" <= ch <= "z":
        return 3
    return 4


def greek_collation_key(name: str) -> tuple:
    """
    Sort key approximating Greek-locale collation for display names.

    Accents and case are ignored at the primary level, final sigma sorts as
    sigma, digits come before letters and Greek script before Latin. The raw
    name is the last tie-breaker so the order is total.
    """
    folded = _strip_marks(name or "").casefold().replace("ς", "σ")
    primary = tuple((_collation_class(ch), ord(ch)) for ch in folded.strip())
    return (primary, name or "")


def norm_site_url(value: str | None) -> str:
    s = str(value or "").strip()
    if not s:
        return ""
    if not (s.startswith("http://") or s.startswith("https://")):
        return ""
    return s.rstrip("/") + "/"


def norm_base_path(value: str | None) -> str:
    value = (value or "/").strip()
    if not value.startswith("/"):
        value = "/" + value
    if not value.endswith("/"):
        value += "/"
    return value


def href(base_path: str, path: str) -> str:
    return base_path + path.lstrip("/")
