from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from radiodir.shared import normalize_genre, read_json, slugify


UNKNOWN_CITY = "Unknown City"


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _opt_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None


def _opt_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _genre_list(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)):
        return tuple(str(g) for g in value if g)
    return ()


@dataclass(frozen=True)
class Station:
    slug: str
    name: str
    stationuuid: str | None = None
    state: str | None = None
    country: str | None = None
    countrycode: str | None = None
    stream_url: str | None = None
    homepage: str | None = None
    favicon: str | None = None
    genres: tuple[str, ...] = ()
    language: str | None = None
    bitrate: int | None = None
    codec: str | None = None
    clickcount: int | None = None
    lastcheckok: int | None = None
    votes: int | None = None
    hls: int | None = None
    ssl_error: int | None = None
    geo_lat: float | None = None
    geo_long: float | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Station":
        return cls(
            slug=str(raw.get("slug") or "").strip(),
            name=str(raw.get("name") or "").strip(),
            stationuuid=_opt_str(raw.get("stationuuid")),
            state=_opt_str(raw.get("state")),
            country=_opt_str(raw.get("country")),
            countrycode=_opt_str(raw.get("countrycode")),
            stream_url=_opt_str(raw.get("stream_url")),
            homepage=_opt_str(raw.get("homepage")),
            favicon=_opt_str(raw.get("favicon")),
            genres=_genre_list(raw.get("genres")),
            language=_opt_str(raw.get("language")),
            bitrate=_opt_int(raw.get("bitrate")),
            codec=_opt_str(raw.get("codec")),
            clickcount=_opt_int(raw.get("clickcount")),
            lastcheckok=_opt_int(raw.get("lastcheckok")),
            votes=_opt_int(raw.get("votes")),
            hls=_opt_int(raw.get("hls")),
            ssl_error=_opt_int(raw.get("ssl_error")),
            geo_lat=_opt_float(raw.get("geo_lat")),
            geo_long=_opt_float(raw.get("geo_long")),
        )

    @property
    def is_listed(self) -> bool:
        return self.lastcheckok == 1

    @property
    def vote_count(self) -> int:
        return self.votes or 0


def city_name_for(state: str | None) -> str:
    return (state or "").strip() or UNKNOWN_CITY


def normalize_genres(genres: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Slugify genre labels, dropping blanks and keeping first-seen order."""
    out: list[str] = []
    for genre in genres or ():
        if not str(genre or "").strip():
            continue
        slug = normalize_genre(genre)
        if slug not in out:
            out.append(slug)
    return tuple(out)


@dataclass(frozen=True)
class EnrichedStation:
    station: Station
    city_name: str
    city_slug: str
    normalized_genres: tuple[str, ...]

    @classmethod
    def from_station(cls, station: Station) -> "EnrichedStation":
        city_name = city_name_for(station.state)
        return cls(
            station=station,
            city_name=city_name,
            city_slug=slugify(city_name),
            normalized_genres=normalize_genres(station.genres),
        )

    @property
    def slug(self) -> str:
        return self.station.slug

    @property
    def name(self) -> str:
        return self.station.name

    @property
    def bitrate(self) -> int | None:
        return self.station.bitrate

    @property
    def votes(self) -> int:
        return self.station.vote_count

    @property
    def is_listed(self) -> bool:
        return self.station.is_listed


def parse_stations(records: Any) -> list[Station]:
    if not isinstance(records, list):
        raise ValueError(f"station data must be a JSON array, got {type(records).__name__}")
    out: list[Station] = []
    for i, raw in enumerate(records):
        if not isinstance(raw, dict):
            raise ValueError(f"station record #{i} is not an object")
        out.append(Station.from_dict(raw))
    return out


def load_station_records(path: Path) -> list[dict[str, Any]]:
    """Raw records as stored; raises FileNotFoundError or json.JSONDecodeError."""
    records = read_json(path)
    if not isinstance(records, list):
        raise ValueError(f"{path}: station data must be a JSON array")
    return records


def load_stations(path: Path) -> list[Station]:
    return parse_stations(load_station_records(path))
