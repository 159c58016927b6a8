# catalog/models.py
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PRICE_SOURCES = ("suggestions", "stats", "release_lowest", "")


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int = Field(..., description="Catalog release id")
    title: str = ""
    year: Optional[int] = None
    cover_image: Optional[str] = None
    thumb: Optional[str] = None
    catno: Optional[str] = None

    @field_validator("year", mode="before")
    @classmethod
    def _blank_year(cls, v):
        # upstream sends years as strings, sometimes empty
        if v in (None, "", 0, "0"):
            return None
        try:
            return int(v)
        except (TypeError, ValueError):
            return None

    @field_validator("title", mode="before")
    @classmethod
    def _none_title(cls, v):
        return v or ""


class Pagination(BaseModel):
    model_config = ConfigDict(extra="ignore")

    page: int = 1
    pages: int = 1
    per_page: Optional[int] = None
    items: Optional[int] = None


class SearchPage(BaseModel):
    results: List[SearchResult] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class PriceEstimate(BaseModel):
    """
    Best-effort derived pricing for one release.

    Every field may be absent. An estimate with no numeric field is still
    meaningful: it records that a lookup happened and found nothing.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    typical: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    for_sale: Optional[int] = Field(None, alias="forSale")
    source: str = ""

    @field_validator("source", mode="before")
    @classmethod
    def _known_source(cls, v):
        if v is None:
            return ""
        if v not in PRICE_SOURCES:
            raise ValueError(f"unknown price source: {v!r}")
        return v

    def has_numbers(self) -> bool:
        return any(v is not None for v in (self.typical, self.min, self.max))

    def to_cache(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class EnrichedResult(BaseModel):
    id: int
    title: str = ""
    year: Optional[int] = None
    cover_image: Optional[str] = None
    thumb: Optional[str] = None
    catno: Optional[str] = None
    price: Optional[float] = None
    price_source: str = ""


class SortOption(str, Enum):
    RELEVANCE = "relevance"
    YEAR_ASC = "year-asc"
    YEAR_DESC = "year-desc"
    TITLE_ASC = "title-asc"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"


class FilterState(BaseModel):
    min_price: float = 0
    max_price: float = 50
    include_unknown: bool = True


class QuickRange(BaseModel):
    label: str
    min: float
    max: float


class PriceRange(BaseModel):
    floor: float = 0
    ceiling: float = 100
    min: float = 0
    max: float = 100
    quick_ranges: List[QuickRange] = Field(default_factory=list)


class Track(BaseModel):
    position: str = ""
    title: str = ""
    duration: str = ""
    line: str = ""


class Video(BaseModel):
    uri: Optional[str] = None
    title: str = ""


class MarketplaceSummary(BaseModel):
    lowest: Optional[float] = None
    median: Optional[float] = None
    highest: Optional[float] = None
    for_sale: Optional[int] = None
    lowest_text: str = "—"
    median_text: str = "—"
    highest_text: str = "—"


class RecordDetail(BaseModel):
    id: int
    title: str = ""
    year: Optional[int] = None
    country: str = "Unknown"
    cover: str
    labels: str = "Unknown"
    formats: str = "—"
    genres: str = "—"
    styles: str = "—"
    rating_average: Optional[float] = None
    rating_count: Optional[int] = None
    have: Optional[int] = None
    want: Optional[int] = None
    notes: Optional[str] = None
    tracklist: List[Track] = Field(default_factory=list)
    videos: List[Video] = Field(default_factory=list)
    marketplace: MarketplaceSummary = Field(default_factory=MarketplaceSummary)
    discogs_url: str
