from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MAX_SEARCH_RADIUS_KM
from .geo import LocalityZone, Skill
from .search import SearchQuery, SortMode


class SearchParams(BaseModel):
    """
    Query parameters accepted by GET /tailors.

    An unknown referenceZone is accepted here on purpose: it is a filter that
    matches nothing, not a malformed request.
    """

    model_config = ConfigDict(populate_by_name=True)

    reference_zone: Optional[str] = Field(default=None, alias="referenceZone", min_length=1, max_length=64)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    max_distance_km: Optional[float] = Field(default=None, alias="maxDistanceKm", gt=0, le=MAX_SEARCH_RADIUS_KM)
    skills: List[Skill] = Field(default_factory=list, validation_alias=AliasChoices("skill", "skills"))
    min_experience: Optional[int] = Field(default=None, alias="minExperience", ge=0)
    max_experience: Optional[int] = Field(default=None, alias="maxExperience", ge=0)
    sort_by: SortMode = Field(default=SortMode.DISTANCE, alias="sortBy")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    @model_validator(mode="after")
    def _check_combinations(self):
        has_lat = self.latitude is not None
        has_lng = self.longitude is not None
        if has_lat != has_lng:
            raise ValueError("latitude and longitude must be supplied together")
        if has_lat and self.reference_zone is not None:
            raise ValueError("use either referenceZone or latitude/longitude, not both")
        if (
            self.min_experience is not None
            and self.max_experience is not None
            and self.min_experience > self.max_experience
        ):
            raise ValueError("minExperience must not exceed maxExperience")
        return self

    def to_query(self) -> SearchQuery:
        # dedupe, keep caller order
        skills = tuple(dict.fromkeys(s.value for s in self.skills))
        return SearchQuery(
            latitude=self.latitude,
            longitude=self.longitude,
            zone=self.reference_zone,
            max_distance_km=self.max_distance_km,
            skills=skills,
            min_experience=self.min_experience,
            max_experience=self.max_experience,
            sort_by=self.sort_by,
            limit=self.limit,
            offset=(self.page - 1) * self.limit,
        )


class CreateTailor(BaseModel):
    email: str
    full_name: Optional[str] = None
    location: Optional[LocalityZone] = None
    skills: List[Skill] = Field(default_factory=list)
    years_experience: Optional[int] = Field(default=None, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def _coordinates_together(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be supplied together")
        return self


class UpdateLocation(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class CamelModel(BaseModel):
    """Response models: serialized with camelCase keys, like the query parameters."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TailorOut(CamelModel):
    id: int
    email: str
    full_name: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    skills: List[str]
    years_experience: Optional[int] = None
    rating: float
    review_count: int
    created_at: Optional[datetime] = None
    has_location_point: bool
    distance_km: Optional[float] = None


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class SearchResponse(CamelModel):
    success: bool = True
    sort_by: SortMode
    data: List[TailorOut]
    pagination: Pagination


class SyncResponse(CamelModel):
    updated_count: int
    warnings: List[str]
