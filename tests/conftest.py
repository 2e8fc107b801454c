"""
Shared fixtures for the radiodir test suite.

Provides:
- a record factory shaped like the upstream stations.json entries
- a small Greek station set covering listed/unlisted, missing city and genres
- a SiteConfig pointing at tmp_path
- a minimal page writer that produces a clean output tree for the validator
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from radiodir.config import Limits, SiteConfig
from radiodir.facets import LETTER_BUCKETS, QUALITY_TIER_KEYS, Index, build_index
from radiodir.query import letter_hub, quality_listing, total_pages, quality_stations
from radiodir.shared import href
from radiodir.sitemap import build_url, sitemap_paths, write_sitemaps
from radiodir.stations import parse_stations


def _record(slug: str, **overrides: Any) -> dict[str, Any]:
    rec: dict[str, Any] = {
        "slug": slug,
        "stationuuid": f"uuid-{slug}",
        "name": slug.replace("-", " ").title(),
        "state": None,
        "country": "Greece",
        "countrycode": "GR",
        "stream_url": f"https://streams.example.gr/{slug}",
        "homepage": None,
        "favicon": None,
        "genres": [],
        "language": "greek",
        "bitrate": 128,
        "codec": "MP3",
        "clickcount": 0,
        "lastcheckok": 1,
        "votes": 0,
        "hls": 0,
        "ssl_error": 0,
        "geo_lat": None,
        "geo_long": None,
    }
    rec.update(overrides)
    return rec


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    return _record


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    return [
        _record("radio-athina", name="Ράδιο Αθήνα", state="Αθήνα", genres=["Pop", "pop"], bitrate=128, votes=10),
        _record("rock-fm", name="Rock FM", state="Αθήνα", genres=["Rock", "Pop"], bitrate=320, votes=50),
        _record("thess-news", state="Θεσσαλονίκη", genres=["News"], bitrate=64, votes=5),
        _record("thess-pop", state="Θεσσαλονίκη", genres=["Pop"], bitrate=192, votes=7),
        _record("patra-talk", state=" Πάτρα ", genres=[], bitrate=0, votes=None),
        _record("athina-jazz", state="Αθήνα", genres=["Jazz"], bitrate=128, lastcheckok=0, votes=99),
        _record("laika-web", state=None, genres=["Λαϊκά"], bitrate=None, votes=1),
        _record("9-fm", state="Βόλος", genres=["90s"], bitrate=96, votes=3),
    ]


@pytest.fixture
def sample_index(sample_records) -> Index:
    return build_index(parse_stations(sample_records))


@pytest.fixture
def site(tmp_path: Path) -> SiteConfig:
    return SiteConfig(
        url="https://radio.example.gr",
        base_path="/",
        title="Test Radio",
        data_path=tmp_path / "stations.json",
        dist_dir=tmp_path / "dist",
        limits=Limits(validator_workers=2),
    )


def _html(site: SiteConfig, path: str, title: str, links: list[str]) -> str:
    anchors = "".join(f'<li><a href="{href(site.base_path, link)}">{link}</a></li>' for link in links)
    return (
        "<!doctype html><html><head>"
        f"<title>{site.page_title(title)}</title>"
        f'<meta name="description" content="{title} on {site.title}" />'
        f'<link rel="canonical" href="{build_url(site, path)}" />'
        "</head><body>"
        f'<nav><a href="{href(site.base_path, "/")}">Home</a> <a href="{href(site.base_path, "/sitemap.xml")}">Sitemap</a></nav>'
        f"<ul>{anchors}</ul>"
        "</body></html>"
    )


def write_clean_dist(index: Index, site: SiteConfig) -> Path:
    """Write one minimal page per sitemap URL, with hub pages linking their members."""
    dist = site.dist_dir
    write_sitemaps(index, site, dist, lastmod="2026-01-01T00:00:00Z")

    links: dict[str, list[str]] = {}
    for bucket in LETTER_BUCKETS:
        links[f"/city/letter/{bucket}/"] = [f"/city/{c.city_slug}/" for c in letter_hub(index, "city", bucket)]
        links[f"/genre/letter/{bucket}/"] = [f"/genre/{g.genre_slug}/" for g in letter_hub(index, "genre", bucket)]
    for tier in QUALITY_TIER_KEYS:
        count = len(quality_stations(index, tier, site.limits))
        for n in range(1, total_pages(count, site.limits.quality_page_size) + 1):
            path = f"/quality/{tier}/" if n == 1 else f"/quality/{tier}/page/{n}/"
            page = quality_listing(index, tier, n, site.limits)
            links[path] = [f"/station/{s.slug}/" for s in page.items]

    for paths in sitemap_paths(index, site).values():
        for path in paths:
            out = dist / path.lstrip("/") / "index.html"
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(_html(site, path, path.strip("/") or "Home", links.get(path, [])), encoding="utf-8")
    return dist


@pytest.fixture
def clean_build(sample_records, sample_index, site) -> SiteConfig:
    site.data_path.write_text(json.dumps(sample_records, ensure_ascii=False), encoding="utf-8")
    write_clean_dist(sample_index, site)
    return site
