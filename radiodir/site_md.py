from __future__ import annotations

import re
from typing import Any


_HEADING_RE = re.compile(r"^(?P<level>#{1,6})\s+(?P<title>.+?)\s*$")
_KV_RE = re.compile(r"^(?:-\s*)?(?P<key>[A-Za-z0-9_./-]+)\s*:\s*(?P<val>.*)\s*$")
_SECTIONS = ("site", "limits", "paths")


def _strip_comment(line: str) -> str:
    # Allow Markdown comments anywhere.
    if "<!--" in line:
        return line.split("<!--", 1)[0].rstrip()
    return line


def _parse_scalar(value: str) -> Any:
    s = str(value or "").strip()
    if s == "":
        return ""
    if s.lower() in ("true", "false"):
        return s.lower() == "true"
    if re.fullmatch(r"-?\d+", s):
        return int(s)
    if re.fullmatch(r"-?\d+\.\d+", s):
        return float(s)
    return s


def parse_site_markdown(text: str) -> dict[str, Any]:
    """
    Parse the site config written in conventional Markdown.

    Structure:

    # Site
    - url: https://e-radio-greece.github.io
    - base_path: /
    - title: E-Radio Greece

    # Limits
    - top_cities: 20
    - top_genres_per_city: 5
    - city_genre_cap: 100
    - page_size: 50

    # Paths
    - data: data/stations.json
    - dist: dist

    Unknown top-level headings and free-form lines are ignored. A key/value
    line before the first recognised heading is an error.
    """
    lines = (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")

    cfg: dict[str, Any] = {name: {} for name in _SECTIONS}
    current: str | None = None
    seen_heading = False

    for lineno, raw in enumerate(lines, start=1):
        line = _strip_comment(raw).strip()
        if not line:
            continue
        m = _HEADING_RE.match(line)
        if m:
            seen_heading = True
            title = m.group("title").strip().lower()
            if len(m.group("level")) == 1:
                current = title if title in _SECTIONS else None
            continue

        km = _KV_RE.match(line)
        if not km:
            continue
        if not seen_heading:
            raise ValueError(f"line {lineno}: setting outside of a section: {line!r}")
        if current is None:
            continue
        key = km.group("key").strip().lower().replace("-", "_")
        cfg[current][key] = _parse_scalar(km.group("val"))

    return cfg
