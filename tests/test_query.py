from __future__ import annotations

import pytest

from radiodir.config import Limits
from radiodir.facets import build_index
from radiodir.query import (
    CapExceededError,
    get_city_genre_combos,
    get_city_genre_stations,
    get_city_stat,
    get_genre_stations,
    get_nearby_cities,
    get_nearby_genres,
    get_related_stations,
    get_station_by_slug,
    get_stations_by_quality,
    get_total_stations_count,
    letter_hub,
    paginate,
    quality_listing,
    quality_stations,
)
from radiodir.stations import parse_stations
from radiodir.validate_seo import compute_expected


# ---------------------------------------------------------------------------
# paginate
# ---------------------------------------------------------------------------


def test_paginate_empty_input_has_one_page():
    page = paginate([], 5, 10)
    assert page.items == []
    assert page.total_pages == 1
    assert page.current_page == 1


@pytest.mark.parametrize("requested,current,items", [(0, 1, list(range(10))), (3, 3, [20, 21, 22, 23, 24]), (99, 3, [20, 21, 22, 23, 24])])
def test_paginate_clamps_page(requested, current, items):
    page = paginate(list(range(25)), requested, 10)
    assert page.total_pages == 3
    assert page.current_page == current
    assert page.items == items


# ---------------------------------------------------------------------------
# lookups
# ---------------------------------------------------------------------------


def test_lookups_use_the_right_station_sets(sample_index):
    assert get_total_stations_count(sample_index) == 8
    assert get_station_by_slug(sample_index, "athina-jazz") is not None
    assert get_station_by_slug(sample_index, "nope") is None
    assert get_city_stat(sample_index, "athina").count == 2
    assert get_genre_stations(sample_index, "missing") == ()
    assert [s.slug for s in get_city_genre_stations(sample_index, "athina", "rock")] == ["rock-fm"]


# ---------------------------------------------------------------------------
# related stations
# ---------------------------------------------------------------------------


def test_related_stations_city_first_then_genres(sample_index):
    station = get_station_by_slug(sample_index, "radio-athina")
    related = get_related_stations(sample_index, station, 8)
    assert [s.slug for s in related] == ["rock-fm", "thess-pop"]


def test_related_stations_respects_max_and_excludes_self(sample_index):
    station = get_station_by_slug(sample_index, "rock-fm")
    assert [s.slug for s in get_related_stations(sample_index, station, 1)] == ["radio-athina"]
    for s in sample_index.stations_all:
        related = get_related_stations(sample_index, s, 2)
        assert len(related) <= 2
        assert s.slug not in [r.slug for r in related]
    assert get_related_stations(sample_index, station, 0) == []


def test_related_stations_follow_declared_genre_order(make_record):
    idx = build_index(
        parse_stations(
            [
                make_record("me", state="Πάτρα", genres=["Jazz", "Blues"]),
                make_record("blues-1", state="Βόλος", genres=["Blues"]),
                make_record("jazz-1", state="Βόλος", genres=["Jazz"]),
            ]
        )
    )
    me = get_station_by_slug(idx, "me")
    assert [s.slug for s in get_related_stations(idx, me)] == ["jazz-1", "blues-1"]


# ---------------------------------------------------------------------------
# nearby
# ---------------------------------------------------------------------------


@pytest.fixture
def alphabet_index(make_record):
    states = ["Ηράκλειο", "Βόλος", "Άργος", "Ζάκυνθος", "Δράμα", "Έδεσσα", "Γιάννενα"]
    return build_index(parse_stations([make_record(f"st-{i}", state=s, genres=[s]) for i, s in enumerate(states)]))


@pytest.mark.parametrize(
    "slug,expected",
    [
        ("drama", ["volos", "giannena", "edessa", "zakynthos"]),
        ("argos", ["volos", "giannena", "drama", "edessa"]),
        ("irakleio", ["giannena", "drama", "edessa", "zakynthos"]),
    ],
)
def test_nearby_cities_window(alphabet_index, slug, expected):
    assert [c.city_slug for c in get_nearby_cities(alphabet_index, slug, 4)] == expected


def test_nearby_genres_use_display_names(alphabet_index):
    # Genre display names are transliterated titles, so they sort in Latin order.
    assert [g.genre_slug for g in get_nearby_genres(alphabet_index, "argos", 2)] == ["drama", "edessa"]
    assert [c.city_slug for c in get_nearby_cities(alphabet_index, "argos", 2)] == ["volos", "giannena"]


def test_nearby_unknown_slug_is_empty(alphabet_index):
    assert get_nearby_cities(alphabet_index, "unknown-place", 4) == []


def test_nearby_with_fewer_facets_than_limit(sample_index):
    nearby = get_nearby_cities(sample_index, "athina", 10)
    assert len(nearby) == len(sample_index.cities) - 1
    assert "athina" not in [c.city_slug for c in nearby]


# ---------------------------------------------------------------------------
# city x genre
# ---------------------------------------------------------------------------


def test_city_genre_combos(sample_index):
    combos = get_city_genre_combos(sample_index, Limits())
    assert [(c.city_slug, c.genre_slug) for c in combos] == [
        ("athina", "pop"),
        ("athina", "rock"),
        ("thessaloniki", "news"),
        ("thessaloniki", "pop"),
        ("unknown-city", "laika"),
        ("volos", "90s"),
    ]
    assert len(combos) <= Limits().city_genre_cap


def test_city_genre_combos_respect_top_n(sample_index):
    combos = get_city_genre_combos(sample_index, Limits(top_cities=1, top_genres_per_city=1))
    assert [(c.city_slug, c.genre_slug, c.count) for c in combos] == [("athina", "pop", 2)]


def test_city_genre_combos_over_cap_raise_instead_of_truncating(sample_index):
    with pytest.raises(CapExceededError) as exc:
        get_city_genre_combos(sample_index, Limits(city_genre_cap=5))
    assert exc.value.count == 6
    assert exc.value.cap == 5


def test_city_genre_combos_honour_wide_genre_limit(make_record):
    records = [make_record("multi", state="Αθήνα", genres=["f1", "f2", "f3", "f4", "f5", "f6"])]
    limits = Limits(top_genres_per_city=6)
    combos = get_city_genre_combos(build_index(parse_stations(records)), limits)
    assert [c.genre_slug for c in combos] == ["f1", "f2", "f3", "f4", "f5", "f6"]
    assert {(c.city_slug, c.genre_slug) for c in combos} == compute_expected(records, limits).combos


# ---------------------------------------------------------------------------
# quality tiers
# ---------------------------------------------------------------------------


def test_quality_membership_excludes_unknown_bitrate(sample_index):
    tiered = {s.slug for tier in ("low", "standard", "high", "hd") for s in get_stations_by_quality(sample_index, tier)}
    assert "patra-talk" not in tiered
    assert "laika-web" not in tiered
    assert "athina-jazz" not in tiered
    assert [s.slug for s in get_stations_by_quality(sample_index, "standard")] == ["radio-athina", "9-fm"]


def test_quality_listing_ranks_caps_and_paginates(make_record):
    idx = build_index(parse_stations([make_record(f"s{i}", bitrate=300, votes=i) for i in range(7)]))
    limits = Limits(quality_cap=5, quality_page_size=2)
    assert [s.slug for s in quality_stations(idx, "hd", limits)] == ["s6", "s5", "s4", "s3", "s2"]
    page = quality_listing(idx, "hd", 3, limits)
    assert page.total_pages == 3
    assert [s.slug for s in page.items] == ["s2"]


def test_unknown_quality_tier(sample_index):
    with pytest.raises(KeyError):
        get_stations_by_quality(sample_index, "lossless")


# ---------------------------------------------------------------------------
# letter hubs
# ---------------------------------------------------------------------------


def test_letter_hub(sample_index):
    assert [c.city_slug for c in letter_hub(sample_index, "city", "a")] == ["athina"]
    assert [g.genre_slug for g in letter_hub(sample_index, "genre", "0-9")] == ["90s"]
    assert letter_hub(sample_index, "city", "other") == []
    with pytest.raises(KeyError):
        letter_hub(sample_index, "city", "ab")
    with pytest.raises(KeyError):
        letter_hub(sample_index, "station", "a")