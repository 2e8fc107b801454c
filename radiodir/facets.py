from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from radiodir.shared import title_from_slug
from radiodir.stations import UNKNOWN_CITY, EnrichedStation, Station


BITRATE_BUCKETS = ("0-63", "64-127", "128-191", "192-255", "256+", "unknown")

# (tier, lowest kbps, highest kbps or None for open-ended)
QUALITY_TIERS = (
    ("low", 1, 95),
    ("standard", 96, 159),
    ("high", 160, 255),
    ("hd", 256, None),
)
QUALITY_TIER_KEYS = tuple(t[0] for t in QUALITY_TIERS)

LETTER_BUCKETS = tuple("abcdefghijklmnopqrstuvwxyz") + ("0-9", "other")


def bitrate_bucket(bitrate: int | None) -> str:
    if not bitrate or bitrate <= 0:
        return "unknown"
    if bitrate < 64:
        return "0-63"
    if bitrate < 128:
        return "64-127"
    if bitrate < 192:
        return "128-191"
    if bitrate < 256:
        return "192-255"
    return "256+"


def quality_tier(bitrate: int | None) -> str | None:
    if not bitrate or bitrate <= 0:
        return None
    for tier, lo, hi in QUALITY_TIERS:
        if bitrate >= lo and (hi is None or bitrate <= hi):
            return tier
    return None


def in_quality_tier(bitrate: int | None, tier: str) -> bool:
    for key, lo, hi in QUALITY_TIERS:
        if key == tier:
            return bitrate is not None and bitrate >= lo and (hi is None or bitrate <= hi)
    raise KeyError(f"unknown quality tier: {tier}")


def letter_bucket(slug: str) -> str:
    first = (slug or "")[:1].lower()
    if "a" <= first <= "z":
        return first
    if "0" <= first <= "9":
        return "0-9"
    return "other"


def empty_bitrate_distribution() -> dict[str, int]:
    return {bucket: 0 for bucket in BITRATE_BUCKETS}


@dataclass(frozen=True)
class TopItem:
    slug: str
    name: str
    count: int


@dataclass(frozen=True)
class CityStat:
    city_slug: str
    city_name: str
    count: int
    top_genres: tuple[TopItem, ...]
    bitrate_distribution: Mapping[str, int]


@dataclass(frozen=True)
class GenreStat:
    genre_slug: str
    genre_name: str
    count: int
    top_cities: tuple[TopItem, ...]
    bitrate_distribution: Mapping[str, int]


def to_top_items(counts: Mapping[str, int], limit: int = 5, use_title: bool = False) -> tuple[TopItem, ...]:
    # sorted() is stable: equal counts keep the dict's insertion order.
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:limit]
    return tuple(
        TopItem(slug=slug, name=title_from_slug(slug) if use_title else slug, count=count)
        for slug, count in ranked
    )


def format_bitrate_summary(distribution: Mapping[str, int]) -> str:
    parts = []
    for bucket in BITRATE_BUCKETS:
        if bucket == "unknown":
            continue
        n = distribution.get(bucket) or 0
        if n:
            parts.append(f"{n} at {bucket} kbps")
    return ", ".join(parts) if parts else "bitrate data is limited."


@dataclass(frozen=True)
class Index:
    """
    Derived facet state for one build. Built once by build_index(); every map
    is a read-only view.
    """

    stations_all: tuple[EnrichedStation, ...]
    stations_listing: tuple[EnrichedStation, ...]
    stations_by_city: Mapping[str, tuple[EnrichedStation, ...]]
    stations_by_genre: Mapping[str, tuple[EnrichedStation, ...]]
    city_genre_counts: Mapping[str, Mapping[str, int]]
    genre_city_counts: Mapping[str, Mapping[str, int]]
    city_bitrate: Mapping[str, Mapping[str, int]]
    genre_bitrate: Mapping[str, Mapping[str, int]]
    cities: tuple[CityStat, ...]
    genres: tuple[GenreStat, ...]
    top_rated: tuple[EnrichedStation, ...]
    city_by_slug: Mapping[str, CityStat]
    genre_by_slug: Mapping[str, GenreStat]
    station_by_slug: Mapping[str, EnrichedStation]


def _frozen_nested(mapping: dict[str, dict[str, int]]) -> Mapping[str, Mapping[str, int]]:
    return MappingProxyType({k: MappingProxyType(dict(v)) for k, v in mapping.items()})


def build_index(stations: Iterable[Station]) -> Index:
    enriched = tuple(EnrichedStation.from_station(s) for s in stations)
    listing = tuple(s for s in enriched if s.is_listed)

    by_city: dict[str, list[EnrichedStation]] = {}
    by_genre: dict[str, list[EnrichedStation]] = {}
    city_genre: dict[str, dict[str, int]] = {}
    genre_city: dict[str, dict[str, int]] = {}
    city_bitrate: dict[str, dict[str, int]] = {}
    genre_bitrate: dict[str, dict[str, int]] = {}

    for station in listing:
        city = station.city_slug
        by_city.setdefault(city, []).append(station)
        cg = city_genre.setdefault(city, {})
        bucket = bitrate_bucket(station.bitrate)
        city_bitrate.setdefault(city, empty_bitrate_distribution())[bucket] += 1

        for genre in station.normalized_genres:
            by_genre.setdefault(genre, []).append(station)
            cg[genre] = cg.get(genre, 0) + 1
            gc = genre_city.setdefault(genre, {})
            gc[city] = gc.get(city, 0) + 1
            genre_bitrate.setdefault(genre, empty_bitrate_distribution())[bucket] += 1

    city_genre_ro = _frozen_nested(city_genre)
    genre_city_ro = _frozen_nested(genre_city)
    city_bitrate_ro = _frozen_nested(city_bitrate)
    genre_bitrate_ro = _frozen_nested(genre_bitrate)
    empty = MappingProxyType(empty_bitrate_distribution())

    city_stats = [
        CityStat(
            city_slug=slug,
            city_name=members[0].city_name if members else UNKNOWN_CITY,
            count=len(members),
            top_genres=to_top_items(city_genre.get(slug) or {}, 5, use_title=True),
            bitrate_distribution=city_bitrate_ro.get(slug) or empty,
        )
        for slug, members in by_city.items()
    ]
    genre_stats = [
        GenreStat(
            genre_slug=slug,
            genre_name=title_from_slug(slug),
            count=len(members),
            top_cities=to_top_items(genre_city.get(slug) or {}, 5, use_title=True),
            bitrate_distribution=genre_bitrate_ro.get(slug) or empty,
        )
        for slug, members in by_genre.items()
    ]
    cities = tuple(sorted(city_stats, key=lambda c: c.count, reverse=True))
    genres = tuple(sorted(genre_stats, key=lambda g: g.count, reverse=True))

    station_by_slug: dict[str, EnrichedStation] = {}
    for station in enriched:
        # First record wins if upstream ever ships a duplicate slug.
        station_by_slug.setdefault(station.slug, station)

    return Index(
        stations_all=enriched,
        stations_listing=listing,
        stations_by_city=MappingProxyType({k: tuple(v) for k, v in by_city.items()}),
        stations_by_genre=MappingProxyType({k: tuple(v) for k, v in by_genre.items()}),
        city_genre_counts=city_genre_ro,
        genre_city_counts=genre_city_ro,
        city_bitrate=city_bitrate_ro,
        genre_bitrate=genre_bitrate_ro,
        cities=cities,
        genres=genres,
        top_rated=tuple(sorted(listing, key=lambda s: s.votes, reverse=True)),
        city_by_slug=MappingProxyType({c.city_slug: c for c in cities}),
        genre_by_slug=MappingProxyType({g.genre_slug: g for g in genres}),
        station_by_slug=MappingProxyType(station_by_slug),
    )
