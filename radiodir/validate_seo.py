from __future__ import annotations

import html
import json
import re
import sys
import urllib.parse
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from radiodir.config import Limits, SiteConfig, load_config
from radiodir.facets import LETTER_BUCKETS, QUALITY_TIER_KEYS, in_quality_tier, letter_bucket, quality_tier
from radiodir.shared import slugify
from radiodir.sitemap import FIXED_HUBS, SITEMAP_FILES, SITEMAP_INDEX
from radiodir.stations import city_name_for, load_station_records, normalize_genres, parse_stations


_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.I | re.S)
_META_RE = re.compile(r"<meta\b[^>]*>", re.I)
_LINK_RE = re.compile(r"<link\b[^>]*>", re.I)
_ATTR_RE = re.compile(r"""([a-zA-Z_:][-a-zA-Z0-9_:.]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_HREF_RE = re.compile(r"""\bhref\s*=\s*(?:"([^"]*)"|'([^']*)')""", re.I)
_LOC_RE = re.compile(r"<loc>(.*?)</loc>", re.I | re.S)
_STATION_PAGE_RE = re.compile(r"^station/([^/]+)/index\.html$")


@dataclass(frozen=True)
class ExpectedState:
    station_count: int
    station_bitrates: dict[str, int | None]
    city_letters: dict[str, str]
    genre_letters: dict[str, str]
    quality_counts: dict[str, int]
    combo_cap: int
    combos: frozenset[tuple[str, str]] | None
    combo_error: str | None = None


@dataclass(frozen=True)
class PageScan:
    title: str | None
    description: str | None
    canonicals: tuple[str, ...]
    hrefs: tuple[str, ...]


@dataclass
class ActualState:
    root_exists: bool
    files: frozenset[str] = frozenset()
    pages: dict[str, PageScan] = field(default_factory=dict)
    station_dirs: frozenset[str] | None = None
    combo_dirs: frozenset[tuple[str, str]] = frozenset()
    sitemaps: dict[str, tuple[str, ...] | None] = field(default_factory=dict)
    unreadable: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Expected state (pure)
# ---------------------------------------------------------------------------


def compute_expected(records: list[dict[str, Any]], limits: Limits) -> ExpectedState:
    """
    Re-derive the facet state straight from the raw records. Shares only the
    slug rules and the Limits with the indexer; the counting is done here.
    """
    stations = parse_stations(records)

    bitrates: dict[str, int | None] = {}
    for s in stations:
        bitrates.setdefault(s.slug, s.bitrate)

    city_counts: Counter[str] = Counter()
    genre_counts: Counter[str] = Counter()
    city_genres: dict[str, Counter[str]] = {}
    tier_counts: Counter[str] = Counter()
    for s in stations:
        if s.lastcheckok != 1:
            continue
        city = slugify(city_name_for(s.state))
        city_counts[city] += 1
        per_city = city_genres.setdefault(city, Counter())
        for genre in normalize_genres(s.genres):
            genre_counts[genre] += 1
            per_city[genre] += 1
        tier = quality_tier(s.bitrate)
        if tier:
            tier_counts[tier] += 1

    combos: list[tuple[str, str]] = []
    for city, _count in city_counts.most_common(limits.top_cities):
        for genre, _n in city_genres[city].most_common(limits.top_genres_per_city):
            combos.append((city, genre))

    combo_error = None
    if len(combos) > limits.city_genre_cap:
        combo_error = f"City-genre combinations exceed cap: {len(combos)} > {limits.city_genre_cap}"

    return ExpectedState(
        station_count=len(stations),
        station_bitrates=bitrates,
        city_letters={c: letter_bucket(c) for c in city_counts},
        genre_letters={g: letter_bucket(g) for g in genre_counts},
        quality_counts={t: min(tier_counts[t], limits.quality_cap) for t in QUALITY_TIER_KEYS},
        combo_cap=limits.city_genre_cap,
        combos=None if combo_error else frozenset(combos),
        combo_error=combo_error,
    )


# ---------------------------------------------------------------------------
# Actual state (reads the output tree)
# ---------------------------------------------------------------------------


def _read_text(path: Path) -> str | None:
    # A file that is gone is an expected outcome, not a crash.
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except (FileNotFoundError, IsADirectoryError):
        return None


def _attrs(tag: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for m in _ATTR_RE.finditer(tag):
        value = m.group(2) if m.group(2) is not None else m.group(3)
        out.setdefault(m.group(1).lower(), html.unescape(value or ""))
    return out


def parse_page(text: str) -> PageScan:
    m = _TITLE_RE.search(text)
    title = html.unescape(m.group(1)).strip() if m else None

    description = None
    for tag in _META_RE.findall(text):
        a = _attrs(tag)
        if a.get("name", "").lower() == "description":
            description = a.get("content", "").strip()
            break

    canonicals = []
    for tag in _LINK_RE.findall(text):
        a = _attrs(tag)
        if "canonical" in a.get("rel", "").lower().split():
            canonicals.append(a.get("href", "").strip())

    hrefs = tuple(html.unescape(m.group(1) if m.group(1) is not None else m.group(2)) for m in _HREF_RE.finditer(text))
    return PageScan(title=title, description=description, canonicals=tuple(canonicals), hrefs=hrefs)


def _scan_page(path: Path) -> PageScan | None:
    text = _read_text(path)
    return parse_page(text) if text is not None else None


def _subdirs(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    return [p for p in path.iterdir() if p.is_dir()]


def scan_actual(dist_dir: Path, *, workers: int = 8) -> ActualState:
    if not dist_dir.is_dir():
        return ActualState(root_exists=False, sitemaps={n: None for n in (SITEMAP_INDEX, *SITEMAP_FILES)})

    files = frozenset(p.relative_to(dist_dir).as_posix() for p in dist_dir.rglob("*") if p.is_file())

    pages: dict[str, PageScan] = {}
    unreadable: dict[str, str] = {}
    html_files = sorted(f for f in files if f.endswith(".html"))
    with ThreadPoolExecutor(max_workers=max(1, workers)) as ex:
        futs = {ex.submit(_scan_page, dist_dir / rel): rel for rel in html_files}
        for fut in as_completed(futs):
            rel = futs[fut]
            try:
                scan = fut.result()
            except OSError as e:
                unreadable[rel] = e.strerror or str(e)
                continue
            if scan is not None:
                pages[rel] = scan
    pages = {rel: pages[rel] for rel in sorted(pages)}

    station_root = dist_dir / "station"
    station_dirs = frozenset(p.name for p in _subdirs(station_root)) if station_root.is_dir() else None

    combo_dirs = frozenset(
        (city_dir.name, genre_dir.name)
        for city_dir in _subdirs(dist_dir / "city")
        for genre_dir in _subdirs(city_dir / "genre")
    )

    sitemaps: dict[str, tuple[str, ...] | None] = {}
    for name in (SITEMAP_INDEX, *SITEMAP_FILES):
        try:
            text = _read_text(dist_dir / name)
        except OSError as e:
            unreadable[name] = e.strerror or str(e)
            sitemaps[name] = ()
            continue
        sitemaps[name] = None if text is None else tuple(html.unescape(x.strip()) for x in _LOC_RE.findall(text))

    return ActualState(
        root_exists=True,
        files=files,
        pages=pages,
        station_dirs=station_dirs,
        combo_dirs=combo_dirs,
        sitemaps=sitemaps,
        unreadable={rel: unreadable[rel] for rel in sorted(unreadable)},
    )


# ---------------------------------------------------------------------------
# Diff (pure)
# ---------------------------------------------------------------------------


def _strip_base(path: str, base_path: str) -> str:
    base = base_path.rstrip("/")
    if base and (path == base or path.startswith(base + "/")):
        path = path[len(base) :]
    return path


def dist_rel_for_path(path: str, site: SiteConfig) -> str:
    """
    Map a URL path to the output file that serves it. Paths with an extension
    resolve literally; others resolve to the directory's index.html.
    """
    path = urllib.parse.unquote(urllib.parse.urlsplit(path).path)
    rel = _strip_base(path, site.base_path).lstrip("/")
    if PurePosixPath(rel).suffix:
        return rel
    return (rel.rstrip("/") + "/index.html").lstrip("/")


def internal_target(href: str, site: SiteConfig) -> str | None:
    """Output-relative file for a root-relative href, or None when not internal."""
    href = (href or "").strip()
    if not href.startswith("/") or href.startswith("//"):
        return None
    return dist_rel_for_path(href, site)


def _hub_path(rel_index: str) -> str:
    return "/" + rel_index[: -len("index.html")]


def _check_pages(actual: ActualState, site: SiteConfig, errors: list[str]) -> None:
    for rel, reason in actual.unreadable.items():
        errors.append(f"Unreadable file {rel}: {reason}")

    seen: dict[str, str] = {}
    duplicates: list[str] = []
    for rel, page in actual.pages.items():
        if not page.title:
            errors.append(f"Missing title in {rel}")
        if not page.description:
            errors.append(f"Missing description in {rel}")
        canonicals = [c for c in page.canonicals if c]
        if not canonicals:
            errors.append(f"Missing canonical in {rel}")
        elif len(page.canonicals) > 1:
            errors.append(f"Multiple canonicals in {rel}: {len(page.canonicals)}")
        else:
            canonical = canonicals[0]
            if canonical in seen and canonical not in duplicates:
                duplicates.append(canonical)
            seen.setdefault(canonical, rel)

        for link in page.hrefs:
            target = internal_target(link, site)
            if target is not None and target not in actual.files:
                errors.append(f"Broken internal link {link} referenced in {rel}")

    if duplicates:
        errors.append(f"Duplicate canonicals found: {', '.join(duplicates)}")


def _linked_targets(page: PageScan, site: SiteConfig) -> set[str]:
    out = set()
    for link in page.hrefs:
        target = internal_target(link, site)
        if target is not None:
            out.add(target)
    return out


def _check_facets(expected: ExpectedState, actual: ActualState, site: SiteConfig, errors: list[str]) -> None:
    if actual.station_dirs is None:
        errors.append("Missing station directory /station/")
    elif len(actual.station_dirs) != expected.station_count:
        errors.append(
            f"Station pages count mismatch: expected {expected.station_count}, found {len(actual.station_dirs)}"
        )

    for facet, letters in (("city", expected.city_letters), ("genre", expected.genre_letters)):
        hubs: dict[str, set[str] | None] = {}
        for bucket in LETTER_BUCKETS:
            rel = f"{facet}/letter/{bucket}/index.html"
            page = actual.pages.get(rel)
            if rel not in actual.files or page is None:
                errors.append(f"Missing {facet} letter hub {_hub_path(rel)}")
                hubs[bucket] = None
            else:
                hubs[bucket] = _linked_targets(page, site)

        for slug, bucket in letters.items():
            rel = f"{facet}/{slug}/index.html"
            if rel not in actual.files:
                errors.append(f"Missing {facet} page /{facet}/{slug}/")
            linked = hubs.get(bucket)
            if linked is not None and rel not in linked:
                errors.append(f"{facet.capitalize()} {slug} missing from letter hub /{facet}/letter/{bucket}/")

    for hub in FIXED_HUBS:
        if dist_rel_for_path(hub, site) not in actual.files:
            errors.append(f"Missing hub page {hub}")


def _check_combos(expected: ExpectedState, actual: ActualState, errors: list[str]) -> None:
    if expected.combo_error:
        errors.append(expected.combo_error)
    found = actual.combo_dirs
    if len(found) > expected.combo_cap:
        errors.append(f"City-genre pages exceed cap: {len(found)} > {expected.combo_cap}")
    if expected.combos is None:
        return
    for city, genre in sorted(expected.combos - found):
        errors.append(f"Missing city-genre page /city/{city}/genre/{genre}/")
    for city, genre in sorted(found - expected.combos):
        errors.append(f"Unexpected city-genre page /city/{city}/genre/{genre}/")


def _check_quality(expected: ExpectedState, actual: ActualState, site: SiteConfig, errors: list[str]) -> None:
    page_size = site.limits.quality_page_size
    for tier in QUALITY_TIER_KEYS:
        pages = max(1, -(-expected.quality_counts.get(tier, 0) // page_size))
        for n in range(1, pages + 1):
            path = f"/quality/{tier}/" if n == 1 else f"/quality/{tier}/page/{n}/"
            if dist_rel_for_path(path, site) not in actual.files:
                errors.append(f"Missing quality page {path}")

        prefix = f"quality/{tier}/"
        for rel, page in actual.pages.items():
            if not rel.startswith(prefix):
                continue
            for target in sorted(_linked_targets(page, site)):
                m = _STATION_PAGE_RE.match(target)
                if not m:
                    continue
                slug = m.group(1)
                if slug not in expected.station_bitrates:
                    errors.append(f"Unknown station {slug} linked from {_hub_path(rel)}")
                    continue
                bitrate = expected.station_bitrates[slug]
                if not in_quality_tier(bitrate, tier):
                    errors.append(f"Station {slug} on {_hub_path(rel)} has bitrate {bitrate} outside the {tier} tier")


def _check_sitemaps(actual: ActualState, site: SiteConfig, errors: list[str]) -> None:
    for name in (SITEMAP_INDEX, *SITEMAP_FILES):
        locs = actual.sitemaps.get(name)
        if locs is None:
            errors.append(f"Missing sitemap {name}")
            continue
        for loc in locs:
            target = dist_rel_for_path(loc, site)
            if loc.endswith(".xml"):
                if target not in actual.files:
                    errors.append(f"Sitemap {name} lists missing sitemap {loc}")
            elif target not in actual.files:
                errors.append(f"Sitemap URL missing in dist: {loc}")


def diff(expected: ExpectedState, actual: ActualState, site: SiteConfig) -> list[str]:
    """Every divergence between expectation and output, in a stable order."""
    errors: list[str] = []
    if not actual.root_exists:
        errors.append(f"Missing output directory {site.dist_dir}")
    _check_pages(actual, site, errors)
    _check_facets(expected, actual, site, errors)
    _check_combos(expected, actual, errors)
    _check_quality(expected, actual, site, errors)
    _check_sitemaps(actual, site, errors)
    return errors


def validate(site: SiteConfig, records: list[dict[str, Any]]) -> list[str]:
    expected = compute_expected(records, site.limits)
    actual = scan_actual(site.dist_dir, workers=site.limits.validator_workers)
    return diff(expected, actual, site)


def main() -> int:
    try:
        site = load_config()
    except ValueError as e:
        print("[error] Failed to parse site config.", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return 2

    try:
        records = load_station_records(site.data_path)
        # Malformed records are fatal here, not midway through validate().
        parse_stations(records)
    except FileNotFoundError:
        print(f"SEO validation failed:\nMissing station data {site.data_path}", file=sys.stderr)
        return 1
    except (json.JSONDecodeError, ValueError) as e:
        print(f"[error] Failed to parse station data: {site.data_path}", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return 2

    errors = validate(site, records)
    if errors:
        print("SEO validation failed:\n" + "\n".join(errors), file=sys.stderr)
        return 1

    print("SEO validation passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
