"""Pydantic domain models for coordinates, addresses, highways and landmarks."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class GeoPoint(BaseModel):
    """A polyline vertex. Unvalidated: provider geometry is trusted as-is."""
    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float


class Address(BaseModel):
    formatted_address: Optional[str] = None
    full_address: Optional[str] = None
    road: Optional[str] = None
    house_number: Optional[str] = None
    neighbourhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    hamlet: Optional[str] = None
    county: Optional[str] = None

    @property
    def display(self) -> Optional[str]:
        return self.formatted_address or self.full_address or None


class HighwaySegment(BaseModel):
    ref: str
    name: Optional[str] = None
    points: list[GeoPoint] = Field(default_factory=list)


class Milestone(BaseModel):
    lat: float
    lon: float
    km: float = Field(ge=0, lt=2000)


KmMethod = Literal["exact", "nearest", "interpolation", "extrapolation"]


class KmEstimate(BaseModel):
    """Kilometer position along a highway.

    ``distance_from_line`` is the query point's perpendicular distance to the
    reconstructed polyline, or the direct distance to the milestone used when
    the method is ``nearest``.
    """
    model_config = ConfigDict(frozen=True)

    km: float
    estimated: bool = True
    method: KmMethod
    distance_from_line: int = Field(default=0, ge=0)

    @property
    def text(self) -> str:
        prefix = "~" if self.estimated else ""
        return f"KM {prefix}{self.km:.1f}"


class HighwayInfo(BaseModel):
    """Highway identity at a point. ``ref is None`` means not on any highway."""
    ref: Optional[str] = None
    name: Optional[str] = None
    estimate: Optional[KmEstimate] = None

    @property
    def on_highway(self) -> bool:
        return self.ref is not None


LandmarkCategory = Literal[
    "historic", "artwork", "structure", "natural", "tourism", "religious",
    "leisure", "amenity", "shop", "building", "place", "landmark", "other",
]

LandmarkSource = Literal["overpass", "nominatim", "wikidata"]


class Landmark(BaseModel):
    name: str = Field(min_length=1)
    type: str = "other"
    category: LandmarkCategory = "other"
    icon: str = ""
    distance: int = Field(ge=0)
    source: LandmarkSource
    relevance: float = 0.0
    description: str = ""


class LocationInfo(BaseModel):
    """Enrichment payload attached to a capture record by the record store."""
    address: Optional[Address] = None
    highway: HighwayInfo = Field(default_factory=HighwayInfo)
    landmarks: list[Landmark] = Field(default_factory=list)


class HighwayPoint(BaseModel):
    """A notable point of a federal highway from a curated dataset.

    Accepts the dataset's own field names (``tipo``, ``descricao``,
    ``sentido``, ``municipio``, ``uf``, ``lng``) as well as the attribute
    names. ``br`` is the bare highway number, e.g. "101".
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    br: str = Field(min_length=1)
    km: float = Field(ge=0)
    type: str = Field(default="referencia", alias="tipo")
    description: str = Field(default="", alias="descricao")
    direction: str = Field(default="", alias="sentido")
    municipality: str = Field(default="", alias="municipio")
    state: str = Field(default="", alias="uf")
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180, alias="lng")

    @field_validator("br", mode="before")
    @classmethod
    def bare_highway_number(cls, v):
        if isinstance(v, (int, float)):
            v = str(int(v))
        if isinstance(v, str):
            v = v.strip().upper()
            if v.startswith("BR-"):
                v = v[3:]
        return v


PointPrecision = Literal["high", "medium", "low"]


class PointKmEstimate(BaseModel):
    """Km reference derived from the curated highway points.

    ``distance`` is the straight-line distance in meters to the closest
    reference point used.
    """
    br: str
    km: float
    estimated: bool
    nearest: HighwayPoint
    distance: int = Field(ge=0)
    precision: PointPrecision = "high"
    references: list[HighwayPoint] = Field(default_factory=list)

    @property
    def text(self) -> str:
        prefix = "~" if self.estimated else ""
        return f"BR-{self.br}, km {prefix}{self.km:.1f}"

    @property
    def details(self) -> str:
        return f"Near: {self.nearest.description}" if self.nearest.description else ""

    @property
    def suggestion(self) -> str:
        return f"{self.text} - {self.details}" if self.details else self.text
