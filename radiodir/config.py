from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from radiodir.shared import norm_base_path, norm_site_url
from radiodir.site_md import parse_site_markdown


DEFAULT_SITE_URL = "https://e-radio-greece.github.io"


@dataclass(frozen=True)
class Limits:
    # Shared by generation and validation so both agree on the same caps.
    top_cities: int = 20
    top_genres_per_city: int = 5
    city_genre_cap: int = 100
    page_size: int = 50
    quality_cap: int = 100
    quality_page_size: int = 50
    related_max: int = 8
    nearby_limit: int = 6
    validator_workers: int = 8


@dataclass(frozen=True)
class SiteConfig:
    url: str = DEFAULT_SITE_URL
    base_path: str = "/"
    title: str = "E-Radio Greece"
    data_path: Path = Path("data") / "stations.json"
    dist_dir: Path = Path("dist")
    limits: Limits = field(default_factory=Limits)

    def page_title(self, title: str) -> str:
        return f"{title} | {self.title}" if title else self.title


def _limits_from(raw: dict[str, Any]) -> Limits:
    kwargs: dict[str, int] = {}
    for f in fields(Limits):
        if f.name not in raw:
            continue
        value = raw[f.name]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValueError(f"limits.{f.name} must be a positive integer, got {value!r}")
        kwargs[f.name] = value
    return Limits(**kwargs)


def _resolve(root: Path, value: Any, default: Path) -> Path:
    s = str(value or "").strip()
    if not s:
        return default
    p = Path(s)
    return p if p.is_absolute() else root / p


def load_config(
    path: Path | None = None,
    *,
    root: Path | None = None,
    env: dict[str, str] | None = None,
) -> SiteConfig:
    """
    Build the SiteConfig from site.md (optional) and RD_* environment overrides.
    Relative paths in the config resolve against `root` (the working directory
    by default).
    """
    root = root or Path.cwd()
    path = path or (root / "site.md")
    env = os.environ if env is None else env

    raw: dict[str, Any] = {"site": {}, "limits": {}, "paths": {}}
    if path.exists():
        raw = parse_site_markdown(path.read_text(encoding="utf-8"))

    site = raw.get("site") or {}
    paths = raw.get("paths") or {}

    url = norm_site_url(env.get("RD_SITE_URL") or site.get("url") or DEFAULT_SITE_URL)
    if not url:
        raise ValueError(f"site.url must be an http(s) URL, got {site.get('url')!r}")
    base_override = env.get("RD_BASE_PATH")
    base_path = norm_base_path(base_override if base_override is not None else site.get("base_path"))

    return SiteConfig(
        url=url.rstrip("/"),
        base_path=base_path,
        title=str(site.get("title") or SiteConfig.title).strip(),
        data_path=_resolve(root, paths.get("data"), root / "data" / "stations.json"),
        dist_dir=_resolve(root, paths.get("dist"), root / "dist"),
        limits=_limits_from(raw.get("limits") or {}),
    )
