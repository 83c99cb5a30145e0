"""Nearby landmark search across Overpass, Nominatim and Wikidata.

The three providers are queried concurrently and each may fail on its own.
Hits are normalized into Landmark records, scored by proximity and category,
deduplicated by fuzzy name match and truncated to the best few.
"""

import asyncio
import logging
import re
from typing import Optional, Sequence

import httpx
from aiolimiter import AsyncLimiter

from geotag_enrich.config import Settings
from geotag_enrich.models import Coordinate, GeoPoint, Landmark
from .cache import POIS, GeoCache
from .fetch import fetch_with_retry
from .geometry import haversine_distance
from .models import Resolution
from .osm import element_position, query_overpass

logger = logging.getLogger(__name__)

CATEGORY_BONUS = {
    "historic": 50,
    "artwork": 50,
    "landmark": 45,
    "structure": 40,
    "natural": 35,
    "tourism": 35,
    "religious": 30,
    "leisure": 25,
    "building": 20,
    "amenity": 15,
    "place": 15,
    "shop": 10,
    "other": 5,
}
UNKNOWN_CATEGORY_BONUS = 10
CULTURAL_BONUS = 20

NOMINATIM_CLASS_CATEGORIES = {
    "historic": "historic",
    "tourism": "tourism",
    "amenity": "amenity",
    "shop": "shop",
    "leisure": "leisure",
    "man_made": "structure",
    "building": "building",
    "place": "place",
    "highway": "structure",
    "natural": "natural",
    "waterway": "natural",
    "junction": "structure",
}

# Checked in order; first keyword hit wins
WIKIDATA_KEYWORDS = [
    ("historic", ("monument", "memorial", "histórico")),
    ("artwork", ("artwork", "sculpture", "escultura", "mural")),
    ("structure", ("bridge", "viaduct", "ponte", "viaduto")),
    ("religious", ("church", "igreja", "chapel")),
    ("tourism", ("museum", "museu")),
    ("leisure", ("park", "parque", "square", "praça")),
    ("building", ("building", "edificio", "edifício")),
]

TYPE_ICONS = {
    "fuel": "⛽", "restaurant": "🍽️", "fast_food": "🍔", "cafe": "☕",
    "hospital": "🏥", "pharmacy": "💊", "school": "🏫", "bank": "🏦",
    "police": "🚔", "fire_station": "🚒", "place_of_worship": "⛪", "supermarket": "🛒",
    "convenience": "🏪", "hotel": "🏨", "parking": "🅿️", "bus_station": "🚏",
    "university": "🎓", "library": "📚", "cinema": "🎬", "theatre": "🎭",
    "bridge": "🌉", "viaduct": "🌉", "tower": "🗼", "water_tower": "🗼",
    "lighthouse": "🗼", "pier": "🌊", "windmill": "🌬️",
    "museum": "🏛️", "attraction": "⭐", "viewpoint": "👁️", "zoo": "🦁",
    "theme_park": "🎢", "aquarium": "🐠", "gallery": "🖼️",
    "artwork": "🎨", "sculpture": "🗿", "statue": "🗽", "mural": "🎨",
    "monument": "🏛️", "memorial": "🕯️",
    "castle": "🏰", "ruins": "🏚️", "archaeological_site": "🏺", "fort": "🏰",
    "battlefield": "⚔️", "building": "🏛️", "church": "⛪", "chapel": "⛪",
    "park": "🌳", "garden": "🌷", "playground": "🛝", "sports_centre": "🏟️",
    "stadium": "🏟️", "swimming_pool": "🏊", "beach": "🏖️",
    "square": "🏛️", "neighbourhood": "🏘️", "suburb": "🏘️",
    "river": "🏞️", "stream": "🏞️", "creek": "🏞️", "canal": "🏞️",
    "lake": "🏞️", "pond": "🏞️", "reservoir": "🏞️",
    "peak": "⛰️", "hill": "⛰️", "mountain": "⛰️", "ridge": "⛰️",
    "cliff": "🏔️", "valley": "🏔️", "cave_entrance": "🕳️",
    "spring": "💧", "waterfall": "💧", "wetland": "🌿",
    "wood": "🌲", "tree": "🌳", "rock": "🪨",
    "junction": "🔀",
}

CATEGORY_ICONS = {
    "historic": "🏛️",
    "artwork": "🎨",
    "structure": "🌉",
    "natural": "🏞️",
    "tourism": "📍",
    "religious": "⛪",
    "leisure": "🌳",
    "amenity": "📌",
    "shop": "🏪",
    "building": "🏢",
    "landmark": "🏛️",
    "place": "📍",
}
DEFAULT_ICON = "📌"

_BARE_QID = re.compile(r"^Q\d+$")


def poi_icon(type_: Optional[str], category: Optional[str]) -> str:
    if type_ and type_.lower() in TYPE_ICONS:
        return TYPE_ICONS[type_.lower()]
    if category and category in CATEGORY_ICONS:
        return CATEGORY_ICONS[category]
    return DEFAULT_ICON


def extract_poi_type(tags: dict) -> tuple[str, str]:
    """Return (type, category) for OSM tags, most specific tag first."""
    if tags.get("historic"):
        return tags["historic"], "historic"
    if tags.get("tourism") == "artwork" or tags.get("artwork_type"):
        return tags.get("artwork_type") or "artwork", "artwork"
    if tags.get("tourism"):
        return tags["tourism"], "tourism"
    if tags.get("man_made"):
        return tags["man_made"], "structure"
    if tags.get("bridge"):
        return "bridge", "structure"
    if tags.get("natural"):
        return tags["natural"], "natural"
    if tags.get("waterway"):
        return tags["waterway"], "natural"
    if tags.get("junction"):
        return "junction", "structure"
    if tags.get("leisure"):
        return tags["leisure"], "leisure"
    if tags.get("amenity"):
        return tags["amenity"], "amenity"
    if tags.get("shop"):
        return tags["shop"], "shop"
    if tags.get("building") and tags["building"] != "yes":
        return tags["building"], "building"
    if tags.get("place"):
        return tags["place"], "place"
    return "other", "other"


def map_nominatim_class(osm_class: Optional[str]) -> str:
    return NOMINATIM_CLASS_CATEGORIES.get(osm_class or "", "other")


def map_wikidata_instance(instance_label: str) -> str:
    label = instance_label.lower()
    for category, keywords in WIKIDATA_KEYWORDS:
        if any(k in label for k in keywords):
            return category
    return "landmark"


def calculate_relevance(category: str, distance: float, cultural: bool = False) -> float:
    """Proximity score (up to 100) plus category and cultural bonuses."""
    proximity = max(0.0, 100 - distance / 5)
    bonus = CATEGORY_BONUS.get(category, UNKNOWN_CATEGORY_BONUS)
    return proximity + bonus + (CULTURAL_BONUS if cultural else 0)


def is_similar_name(name1: str, name2: str) -> bool:
    """Exact match, containment, or token Jaccard similarity above 0.6."""
    if name1 == name2:
        return True
    if name1 in name2 or name2 in name1:
        return True
    tokens1 = set(name1.split())
    tokens2 = set(name2.split())
    union = tokens1 | tokens2
    return bool(union) and len(tokens1 & tokens2) / len(union) > 0.6


def deduplicate_landmarks(landmarks: Sequence[Landmark]) -> list[Landmark]:
    """Collapse landmarks with similar names, keeping the most relevant one."""
    seen: list[tuple[str, Landmark]] = []
    for lm in landmarks:
        normalized = lm.name.lower().strip()
        for i, (existing_name, existing) in enumerate(seen):
            if is_similar_name(normalized, existing_name):
                if lm.relevance > existing.relevance:
                    seen[i] = (normalized, lm)
                break
        else:
            seen.append((normalized, lm))
    return [lm for _, lm in seen]


def rank_landmarks(landmarks: Sequence[Landmark], limit: int = 3) -> list[Landmark]:
    unique = deduplicate_landmarks(landmarks)
    unique.sort(key=lambda lm: lm.relevance, reverse=True)
    return unique[:limit]


def _make_landmark(
    origin, lat: float, lon: float, name: str, type_: str, category: str,
    source: str, cultural: bool = False, description: str = "",
) -> Landmark:
    dist = haversine_distance(origin, GeoPoint(lat=lat, lon=lon))
    return Landmark(
        name=name,
        type=type_,
        category=category,
        icon=poi_icon(type_, category),
        distance=round(dist),
        source=source,
        relevance=calculate_relevance(category, dist, cultural),
        description=description,
    )


def build_poi_query(coord: Coordinate, radius: float) -> str:
    around = f"(around:{radius:.0f},{coord.lat},{coord.lon})"
    return (
        "[out:json][timeout:15];("
        f'nwr["amenity"~"fuel|hospital|clinic|school|place_of_worship|police|fire_station|bus_station"]["name"]{around};'
        f'nwr["shop"~"supermarket|department_store|mall"]["name"]{around};'
        f'nwr["man_made"]["name"]{around};'
        f'nwr["bridge"]["name"]{around};'
        f'nwr["natural"]["name"]{around};'
        f'nwr["waterway"]["name"]{around};'
        f'nwr["junction"]["name"]{around};'
        f'nwr["historic"]["name"]{around};'
        f'nwr["tourism"]["name"]{around};'
        ");out center tags;"
    )


def build_wikidata_query(coord: Coordinate, radius_km: float) -> str:
    return f"""
SELECT ?item ?itemLabel ?itemDescription ?lat ?lon ?instanceof ?instanceofLabel WHERE {{
  SERVICE wikibase:around {{
    ?item wdt:P625 ?location .
    bd:serviceParam wikibase:center "Point({coord.lon} {coord.lat})"^^geo:wktLiteral .
    bd:serviceParam wikibase:radius "{radius_km}" .
  }}
  ?item wdt:P625 ?location .
  BIND(geof:latitude(?location) AS ?lat)
  BIND(geof:longitude(?location) AS ?lon)
  OPTIONAL {{ ?item wdt:P31 ?instanceof . }}
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "pt,en". }}
}}
LIMIT 30
"""


def parse_overpass_pois(coord: Coordinate, elements: list[dict]) -> list[Landmark]:
    landmarks = []
    for elem in elements:
        tags = elem.get("tags") or {}
        name = (tags.get("name") or "").strip()
        position = element_position(elem)
        if not name or position is None:
            continue
        type_, category = extract_poi_type(tags)
        landmarks.append(_make_landmark(coord, *position, name, type_, category, "overpass"))
    return landmarks


def parse_nominatim_pois(coord: Coordinate, items: list[dict], radius: float) -> list[Landmark]:
    if not isinstance(items, list):
        return []
    landmarks = []
    for item in items:
        name = (item.get("name") or "").strip()
        if not name or not item.get("lat") or not item.get("lon"):
            continue
        category = map_nominatim_class(item.get("class"))
        type_ = item.get("type") or "other"
        lm = _make_landmark(
            coord, float(item["lat"]), float(item["lon"]), name, type_, category, "nominatim",
        )
        if lm.distance <= radius:
            landmarks.append(lm)
    return landmarks


def parse_wikidata_pois(coord: Coordinate, data: dict) -> list[Landmark]:
    """Group SPARQL bindings by item; the first binding of each item wins."""
    items: dict[str, Landmark] = {}
    for binding in data.get("results", {}).get("bindings", []):
        try:
            item_id = binding["item"]["value"]
            lat = float(binding["lat"]["value"])
            lon = float(binding["lon"]["value"])
        except (KeyError, TypeError, ValueError):
            continue
        if item_id in items:
            continue
        name = binding.get("itemLabel", {}).get("value", "").strip()
        if not name or _BARE_QID.match(name):
            continue
        instance_label = binding.get("instanceofLabel", {}).get("value", "")
        category = map_wikidata_instance(instance_label)
        items[item_id] = _make_landmark(
            coord, lat, lon, name, instance_label or "landmark", category, "wikidata",
            cultural=True,
            description=binding.get("itemDescription", {}).get("value", ""),
        )
    return list(items.values())


class LandmarkAggregator:
    SOURCES = ("overpass", "nominatim", "wikidata")

    def __init__(self, settings: Settings, cache: GeoCache, rate_limiter: AsyncLimiter):
        self.settings = settings
        self.cache = cache
        self.rate_limiter = rate_limiter

    async def from_overpass(self, coord: Coordinate) -> list[Landmark]:
        s = self.settings
        elements = await query_overpass(
            build_poi_query(coord, s.landmark_radius_m),
            s.overpass_urls,
            user_agent=s.user_agent,
            timeout=s.overpass_poi_timeout_s,
            max_retries=s.landmark_max_retries,
            backoff_step=s.backoff_step_s,
        )
        return parse_overpass_pois(coord, elements)

    async def from_nominatim(self, coord: Coordinate) -> list[Landmark]:
        s = self.settings
        delta = s.landmark_viewbox_delta_deg
        viewbox = f"{coord.lon - delta},{coord.lat + delta},{coord.lon + delta},{coord.lat - delta}"
        params = {
            "format": "json",
            "viewbox": viewbox,
            "bounded": 1,
            "limit": 20,
            "addressdetails": 1,
            "accept-language": s.accept_language,
        }
        # Nominatim refuses a bounded search without q ("Nothing to search for")
        if s.nominatim_poi_query:
            params["q"] = s.nominatim_poi_query
        async with httpx.AsyncClient(headers={"User-Agent": s.user_agent}) as client:
            response = await fetch_with_retry(
                client, "GET", f"{s.nominatim_url}/search",
                params=params,
                timeout=s.nominatim_poi_timeout_s,
                max_retries=s.landmark_max_retries,
                backoff_step=s.backoff_step_s,
                rate_limiter=self.rate_limiter,
            )
            items = response.json()
        return parse_nominatim_pois(coord, items, s.landmark_radius_m)

    async def from_wikidata(self, coord: Coordinate) -> list[Landmark]:
        s = self.settings
        headers = {"User-Agent": s.user_agent, "Accept": "application/json"}
        async with httpx.AsyncClient(headers=headers) as client:
            response = await fetch_with_retry(
                client, "POST", s.wikidata_url,
                data={"query": build_wikidata_query(coord, s.landmark_radius_m / 1000)},
                timeout=s.wikidata_timeout_s,
                max_retries=s.landmark_max_retries,
                backoff_step=s.backoff_step_s,
            )
            data = response.json()
        return parse_wikidata_pois(coord, data)

    async def find_nearby_landmarks(self, coord: Coordinate) -> Resolution[list[Landmark]]:
        cached = self.cache.get(POIS, coord)
        if cached is not None:
            return cached

        outcomes = await asyncio.gather(
            self.from_overpass(coord),
            self.from_nominatim(coord),
            self.from_wikidata(coord),
            return_exceptions=True,
        )

        candidates: list[Landmark] = []
        failures = []
        for source, outcome in zip(self.SOURCES, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Landmark provider %s failed: %s", source, outcome)
                failures.append(f"{source}: {outcome}")
            else:
                candidates.extend(outcome)

        if len(failures) == len(self.SOURCES):
            return Resolution[list[Landmark]].failure("; ".join(failures), [])

        top = rank_landmarks(candidates, self.settings.max_landmarks)
        if top:
            result = Resolution[list[Landmark]].of(top)
        else:
            result = Resolution[list[Landmark]].empty([])
        self.cache.set(POIS, coord, result)
        return result
