from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from radiodir.config import Limits
from radiodir.facets import (
    LETTER_BUCKETS,
    QUALITY_TIER_KEYS,
    CityStat,
    GenreStat,
    Index,
    in_quality_tier,
    letter_bucket,
    to_top_items,
)
from radiodir.shared import greek_collation_key
from radiodir.stations import EnrichedStation


T = TypeVar("T")


class CapExceededError(ValueError):
    """The city x genre cross product is larger than the configured cap."""

    def __init__(self, count: int, cap: int) -> None:
        super().__init__(f"city-genre combinations exceed cap: {count} > {cap}")
        self.count = count
        self.cap = cap


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total_pages: int
    current_page: int


@dataclass(frozen=True)
class CityGenreCombo:
    city_slug: str
    city_name: str
    genre_slug: str
    genre_name: str
    count: int


def total_pages(count: int, page_size: int) -> int:
    return max(1, math.ceil(count / page_size))


def paginate(items: Sequence[T], page: int, page_size: int) -> Page[T]:
    pages = total_pages(len(items), page_size)
    current = min(max(page, 1), pages)
    start = (current - 1) * page_size
    return Page(items=list(items[start : start + page_size]), total_pages=pages, current_page=current)


def get_city_stations(index: Index, city_slug: str) -> tuple[EnrichedStation, ...]:
    return index.stations_by_city.get(city_slug, ())


def get_genre_stations(index: Index, genre_slug: str) -> tuple[EnrichedStation, ...]:
    return index.stations_by_genre.get(genre_slug, ())


def get_city_stat(index: Index, city_slug: str) -> CityStat | None:
    return index.city_by_slug.get(city_slug)


def get_genre_stat(index: Index, genre_slug: str) -> GenreStat | None:
    return index.genre_by_slug.get(genre_slug)


def get_station_by_slug(index: Index, slug: str) -> EnrichedStation | None:
    return index.station_by_slug.get(slug)


def get_total_stations_count(index: Index) -> int:
    return len(index.stations_all)


def _nearby(ordered: list[tuple[str, str]], slug: str, limit: int) -> list[str]:
    pos = next((i for i, (s, _name) in enumerate(ordered) if s == slug), None)
    if pos is None or limit <= 0:
        return []
    window = limit + 1
    start = max(0, pos - limit // 2)
    end = min(len(ordered), start + window)
    start = max(0, end - window)
    return [s for s, _name in ordered[start:end] if s != slug][:limit]


def get_nearby_cities(index: Index, city_slug: str, limit: int = 6) -> list[CityStat]:
    """Neighbours of a city in alphabetical (Greek collation) order of display name."""
    ordered = sorted(
        ((c.city_slug, c.city_name) for c in index.cities),
        key=lambda pair: greek_collation_key(pair[1]),
    )
    return [index.city_by_slug[s] for s in _nearby(ordered, city_slug, limit)]


def get_nearby_genres(index: Index, genre_slug: str, limit: int = 6) -> list[GenreStat]:
    ordered = sorted(
        ((g.genre_slug, g.genre_name) for g in index.genres),
        key=lambda pair: greek_collation_key(pair[1]),
    )
    return [index.genre_by_slug[s] for s in _nearby(ordered, genre_slug, limit)]


def get_related_stations(index: Index, station: EnrichedStation, max_items: int = 8) -> list[EnrichedStation]:
    """
    Fill up to `max_items` stations: same city first (index order), then each
    of the station's genres in declared order. Not a ranking.
    """
    related: list[EnrichedStation] = []
    used = {station.slug}
    if max_items <= 0:
        return related

    pools = [get_city_stations(index, station.city_slug)]
    pools.extend(get_genre_stations(index, g) for g in station.normalized_genres)
    for pool in pools:
        for candidate in pool:
            if candidate.slug in used:
                continue
            related.append(candidate)
            used.add(candidate.slug)
            if len(related) >= max_items:
                return related
    return related


def get_city_genre_combos(index: Index, limits: Limits) -> list[CityGenreCombo]:
    combos: list[CityGenreCombo] = []
    for city in index.cities[: limits.top_cities]:
        counts = index.city_genre_counts.get(city.city_slug) or {}
        for genre in to_top_items(counts, limits.top_genres_per_city, use_title=True):
            combos.append(
                CityGenreCombo(
                    city_slug=city.city_slug,
                    city_name=city.city_name,
                    genre_slug=genre.slug,
                    genre_name=genre.name,
                    count=genre.count,
                )
            )
    if len(combos) > limits.city_genre_cap:
        raise CapExceededError(len(combos), limits.city_genre_cap)
    return combos


def get_city_genre_stations(index: Index, city_slug: str, genre_slug: str) -> list[EnrichedStation]:
    return [s for s in get_city_stations(index, city_slug) if genre_slug in s.normalized_genres]


def get_stations_by_quality(index: Index, tier: str) -> list[EnrichedStation]:
    if tier not in QUALITY_TIER_KEYS:
        raise KeyError(f"unknown quality tier: {tier}")
    return [s for s in index.stations_listing if in_quality_tier(s.bitrate, tier)]


def quality_stations(index: Index, tier: str, limits: Limits) -> list[EnrichedStation]:
    ranked = sorted(get_stations_by_quality(index, tier), key=lambda s: s.votes, reverse=True)
    return ranked[: limits.quality_cap]


def quality_listing(index: Index, tier: str, page: int, limits: Limits) -> Page[EnrichedStation]:
    return paginate(quality_stations(index, tier, limits), page, limits.quality_page_size)


def letter_hub(index: Index, facet: str, bucket: str) -> list[CityStat] | list[GenreStat]:
    """Facet values whose slug falls in `bucket`, alphabetical by display name."""
    if bucket not in LETTER_BUCKETS:
        raise KeyError(f"unknown letter bucket: {bucket}")
    if facet == "city":
        cities = [c for c in index.cities if letter_bucket(c.city_slug) == bucket]
        return sorted(cities, key=lambda c: greek_collation_key(c.city_name))
    if facet == "genre":
        genres = [g for g in index.genres if letter_bucket(g.genre_slug) == bucket]
        return sorted(genres, key=lambda g: greek_collation_key(g.genre_name))
    raise KeyError(f"unknown facet: {facet}")
