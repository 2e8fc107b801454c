from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

from radiodir.config import SiteConfig, load_config
from radiodir.facets import LETTER_BUCKETS, QUALITY_TIER_KEYS, Index, build_index, format_bitrate_summary
from radiodir.query import (
    CapExceededError,
    get_city_genre_combos,
    get_nearby_cities,
    get_nearby_genres,
    get_related_stations,
    letter_hub,
    quality_stations,
)
from radiodir.shared import norm_base_path, utc_now_iso, write_json
from radiodir.sitemap import write_sitemaps
from radiodir.stations import EnrichedStation, load_stations


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Derive station facets and write sitemaps + facets.json for page templates.")
    p.add_argument("--config", default="site.md", help="Path to the site config Markdown (optional).")
    p.add_argument("--data", default=None, help="Override the station data JSON path.")
    p.add_argument("--dist", default=None, help="Override the output directory.")
    p.add_argument("--base-path", default=None, help="Override base_path (useful for local dev).")
    p.add_argument("--quiet", action="store_true", help="Less logging (still prints errors).")
    return p.parse_args(argv)


def _log(msg: str, *, quiet: bool) -> None:
    if not quiet:
        print(msg)


def _station_row(s: EnrichedStation) -> dict[str, Any]:
    return {
        "slug": s.slug,
        "name": s.name,
        "city": s.city_slug,
        "genres": list(s.normalized_genres),
        "bitrate": s.bitrate,
        "votes": s.votes,
    }


def facets_payload(index: Index, site: SiteConfig) -> dict[str, Any]:
    """Everything the (external) page templates need, keyed by facet family."""
    limits = site.limits
    return {
        "total_stations": len(index.stations_all),
        "listed_stations": len(index.stations_listing),
        "cities": [
            {
                "slug": c.city_slug,
                "name": c.city_name,
                "count": c.count,
                "top_genres": [{"slug": t.slug, "name": t.name, "count": t.count} for t in c.top_genres],
                "bitrate_distribution": dict(c.bitrate_distribution),
                "bitrate_summary": format_bitrate_summary(c.bitrate_distribution),
                "nearby": [n.city_slug for n in get_nearby_cities(index, c.city_slug, limits.nearby_limit)],
            }
            for c in index.cities
        ],
        "genres": [
            {
                "slug": g.genre_slug,
                "name": g.genre_name,
                "count": g.count,
                "top_cities": [{"slug": t.slug, "name": t.name, "count": t.count} for t in g.top_cities],
                "bitrate_distribution": dict(g.bitrate_distribution),
                "bitrate_summary": format_bitrate_summary(g.bitrate_distribution),
                "nearby": [n.genre_slug for n in get_nearby_genres(index, g.genre_slug, limits.nearby_limit)],
            }
            for g in index.genres
        ],
        "letters": {
            "city": {b: [c.city_slug for c in letter_hub(index, "city", b)] for b in LETTER_BUCKETS},
            "genre": {b: [g.genre_slug for g in letter_hub(index, "genre", b)] for b in LETTER_BUCKETS},
        },
        "quality": {
            tier: [s.slug for s in quality_stations(index, tier, limits)] for tier in QUALITY_TIER_KEYS
        },
        "city_genre": [
            {"city": c.city_slug, "genre": c.genre_slug, "count": c.count}
            for c in get_city_genre_combos(index, limits)
        ],
        "top_rated": [s.slug for s in index.top_rated],
        "stations": [
            {
                **_station_row(s),
                "related": [r.slug for r in get_related_stations(index, s, limits.related_max)],
            }
            for s in index.stations_all
        ],
    }


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        site = load_config(Path(args.config))
    except ValueError as e:
        print("[error] Failed to parse site config.", file=sys.stderr)
        print(f"Path: {args.config}", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return 2

    data_path = Path(args.data) if args.data else site.data_path
    dist_dir = Path(args.dist) if args.dist else site.dist_dir
    if args.base_path is not None:
        site = replace(site, base_path=norm_base_path(args.base_path))

    try:
        stations = load_stations(data_path)
    except FileNotFoundError:
        print(f"[error] Missing station data: {data_path}", file=sys.stderr)
        return 2
    except (json.JSONDecodeError, ValueError) as e:
        print(f"[error] Failed to parse station data: {data_path}", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return 2

    index = build_index(stations)
    _log(
        f"[facets] {len(index.stations_all)} stations ({len(index.stations_listing)} listed), "
        f"{len(index.cities)} cities, {len(index.genres)} genres",
        quiet=args.quiet,
    )
    if not index.stations_listing:
        print("[warn] No listed stations (lastcheckok == 1); facet pages will be empty.", file=sys.stderr)

    try:
        payload = facets_payload(index, site)
        written = write_sitemaps(index, site, dist_dir, lastmod=utc_now_iso())
    except CapExceededError as e:
        print(f"[error] {e}", file=sys.stderr)
        print("Lower limits.top_cities / limits.top_genres_per_city or raise limits.city_genre_cap.", file=sys.stderr)
        return 2

    write_json(dist_dir / "facets.json", payload)
    for name, count in written.items():
        _log(f"[sitemap] {name}: {count} urls", quiet=args.quiet)
    _log(f"[facets] wrote {dist_dir / 'facets.json'}", quiet=args.quiet)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
