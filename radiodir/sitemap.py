from __future__ import annotations

import html
from pathlib import Path

from radiodir.config import SiteConfig
from radiodir.facets import LETTER_BUCKETS, QUALITY_TIER_KEYS, Index
from radiodir.query import get_city_genre_combos, quality_stations, total_pages
from radiodir.shared import href


SITEMAP_INDEX = "sitemap.xml"
SITEMAP_FILES = (
    "sitemap-pages.xml",
    "sitemap-stations.xml",
    "sitemap-cities.xml",
    "sitemap-genres.xml",
    "sitemap-top-rated.xml",
    "sitemap-hubs.xml",
)
STATIC_PAGES = ("/", "/top-rated/", "/city/", "/genre/")
FIXED_HUBS = ("/hubs/", "/hubs/top-cities/", "/hubs/top-genres/", "/hubs/city-genre/", "/quality/")

_XMLNS = "http://www.sitemaps.org/schemas/sitemap/0.9"


def build_url(site: SiteConfig, path: str) -> str:
    return site.url.rstrip("/") + href(site.base_path, path)


def _paged(prefix: str, count: int, page_size: int) -> list[str]:
    """`prefix` followed by prefix/page/N/ for every page after the first."""
    paths = [prefix]
    for n in range(2, total_pages(count, page_size) + 1):
        paths.append(f"{prefix}page/{n}/")
    return paths


def station_paths(index: Index) -> list[str]:
    return [f"/station/{s.slug}/" for s in index.stations_all]


def city_paths(index: Index, site: SiteConfig) -> list[str]:
    out: list[str] = []
    for city in index.cities:
        out.extend(_paged(f"/city/{city.city_slug}/", city.count, site.limits.page_size))
    return out


def genre_paths(index: Index, site: SiteConfig) -> list[str]:
    out: list[str] = []
    for genre in index.genres:
        out.extend(_paged(f"/genre/{genre.genre_slug}/", genre.count, site.limits.page_size))
    return out


def top_rated_paths(index: Index, site: SiteConfig) -> list[str]:
    return _paged("/top-rated/", len(index.top_rated), site.limits.page_size)


def hub_paths(index: Index, site: SiteConfig) -> list[str]:
    """Fixed hubs, letter hubs, quality tiers and city x genre pages.

    Raises CapExceededError when the intersection set is over the cap.
    """
    limits = site.limits
    out = list(FIXED_HUBS)
    for bucket in LETTER_BUCKETS:
        out.append(f"/city/letter/{bucket}/")
        out.append(f"/genre/letter/{bucket}/")
    for tier in QUALITY_TIER_KEYS:
        count = len(quality_stations(index, tier, limits))
        out.extend(_paged(f"/quality/{tier}/", count, limits.quality_page_size))
    for combo in get_city_genre_combos(index, limits):
        out.append(f"/city/{combo.city_slug}/genre/{combo.genre_slug}/")
    return out


def sitemap_paths(index: Index, site: SiteConfig) -> dict[str, list[str]]:
    return {
        "sitemap-pages.xml": list(STATIC_PAGES),
        "sitemap-stations.xml": station_paths(index),
        "sitemap-cities.xml": city_paths(index, site),
        "sitemap-genres.xml": genre_paths(index, site),
        "sitemap-top-rated.xml": top_rated_paths(index, site),
        "sitemap-hubs.xml": hub_paths(index, site),
    }


def render_urlset(urls: list[str], *, lastmod: str) -> str:
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<urlset xmlns="{_XMLNS}">']
    for loc in urls:
        lines.append(f"  <url><loc>{html.escape(loc)}</loc><lastmod>{html.escape(lastmod)}</lastmod></url>")
    lines.extend(["</urlset>", ""])
    return "\n".join(lines)


def render_sitemap_index(urls: list[str], *, lastmod: str) -> str:
    lines = ['<?xml version="1.0" encoding="UTF-8"?>', f'<sitemapindex xmlns="{_XMLNS}">']
    for loc in urls:
        lines.append(
            f"  <sitemap><loc>{html.escape(loc)}</loc><lastmod>{html.escape(lastmod)}</lastmod></sitemap>"
        )
    lines.extend(["</sitemapindex>", ""])
    return "\n".join(lines)


def write_sitemaps(index: Index, site: SiteConfig, dist_dir: Path, *, lastmod: str) -> dict[str, int]:
    """Write the six URL sets plus sitemap.xml. Returns {filename: url_count}."""
    dist_dir.mkdir(parents=True, exist_ok=True)
    written: dict[str, int] = {}
    for name, paths in sitemap_paths(index, site).items():
        urls = [build_url(site, p) for p in paths]
        (dist_dir / name).write_text(render_urlset(urls, lastmod=lastmod), encoding="utf-8")
        written[name] = len(urls)

    index_urls = [build_url(site, name) for name in SITEMAP_FILES]
    (dist_dir / SITEMAP_INDEX).write_text(render_sitemap_index(index_urls, lastmod=lastmod), encoding="utf-8")
    written[SITEMAP_INDEX] = len(index_urls)
    return written
