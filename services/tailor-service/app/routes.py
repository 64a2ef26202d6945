import json
import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .cache import SearchCache, search_cache
from .db import database
from .errors import LocationSyncError, StoreTimeout
from .location_sync import sync_location_points
from .models import Tailor
from .schemas import (
    CreateTailor,
    Pagination,
    SearchParams,
    SearchResponse,
    SyncResponse,
    TailorOut,
    UpdateLocation,
)
from .search import effective_sort, resolve_reference, search_tailors

logger = logging.getLogger(__name__)

router = APIRouter()

RETRY_AFTER_SECONDS = 1


async def get_db():
    async with database.session() as session:
        yield session


def get_cache() -> SearchCache:
    return search_cache


def _retryable(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail=f"Tailor store unavailable, retry later: {e}",
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def tailor_out(tailor: Tailor, distance_km: float | None = None) -> TailorOut:
    return TailorOut(
        id=tailor.id,
        email=tailor.email,
        full_name=tailor.full_name,
        location=tailor.location,
        latitude=tailor.latitude,
        longitude=tailor.longitude,
        skills=list(tailor.skills or []),
        years_experience=tailor.years_experience,
        rating=tailor.rating or 0.0,
        review_count=tailor.review_count or 0,
        created_at=tailor.created_at,
        has_location_point=tailor.location_point is not None,
        distance_km=None if distance_km is None else round(distance_km, 3),
    )


@router.get("/tailors")
async def search(
    reference_zone: Optional[str] = Query(None, alias="referenceZone"),
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    max_distance_km: Optional[float] = Query(None, alias="maxDistanceKm"),
    skill: List[str] = Query([]),
    skills: List[str] = Query([]),
    min_experience: Optional[int] = Query(None, alias="minExperience"),
    max_experience: Optional[int] = Query(None, alias="maxExperience"),
    sort_by: str = Query("distance", alias="sortBy"),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    cache: SearchCache = Depends(get_cache),
):
    raw = {
        "reference_zone": reference_zone,
        "latitude": latitude,
        "longitude": longitude,
        "max_distance_km": max_distance_km,
        # ?skill= and ?skills= name the same filter
        "skills": skill + skills,
        "min_experience": min_experience,
        "max_experience": max_experience,
        "sort_by": sort_by,
        "page": page,
    }
    if limit is not None:
        raw["limit"] = limit

    try:
        params = SearchParams(**raw)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json(include_url=False)))

    cache_params = params.model_dump(mode="json")
    key, cached = await cache.lookup(cache_params)
    if cached is not None:
        return cached

    query = params.to_query()
    ref = resolve_reference(query)

    try:
        result = await search_tailors(db, query)
    except StoreTimeout as e:
        logger.warning("tailor search timed out: %s", e)
        raise _retryable(e)
    except SQLAlchemyError as e:
        logger.error("tailor search failed: %s", e)
        raise _retryable(e)

    response = SearchResponse(
        sort_by=effective_sort(query, ref),
        data=[tailor_out(match.tailor, match.distance_km) for match in result.items],
        pagination=Pagination(
            page=params.page,
            limit=params.limit,
            total=result.total,
            total_pages=math.ceil(result.total / params.limit),
        ),
    ).model_dump(mode="json", by_alias=True)

    # distanceKm is reported exactly when there was a point to measure from
    if not ref.present:
        for item in response["data"]:
            item.pop("distanceKm", None)

    await cache.store(key, response)
    return response


@router.post("/tailors", status_code=201)
async def create_tailor(
    data: CreateTailor,
    db: AsyncSession = Depends(get_db),
    cache: SearchCache = Depends(get_cache),
):
    result = await db.execute(select(Tailor).where(Tailor.email == data.email))
    existing = result.scalar_one_or_none()

    if existing:
        raise HTTPException(status_code=400, detail="Tailor already exists")

    tailor = Tailor(
        email=data.email,
        full_name=data.full_name,
        location=data.location.value if data.location else None,
        skills=[s.value for s in data.skills],
        years_experience=data.years_experience,
        latitude=data.latitude,
        longitude=data.longitude,
    )

    db.add(tailor)
    try:
        await db.flush()
    except IntegrityError:
        # lost a race with a concurrent registration of the same email
        await db.rollback()
        raise HTTPException(status_code=400, detail="Tailor already exists")
    await _derive_point(db, tailor)

    await cache.invalidate()

    return {"message": "Tailor created", "id": tailor.id}


@router.put("/tailors/{tailor_id}/location")
async def update_location(
    tailor_id: int,
    data: UpdateLocation,
    db: AsyncSession = Depends(get_db),
    cache: SearchCache = Depends(get_cache),
):
    result = await db.execute(select(Tailor).where(Tailor.id == tailor_id))
    tailor = result.scalar_one_or_none()

    if not tailor:
        raise HTTPException(status_code=404, detail="Tailor not found")

    # the attribute listener drops location_point when a coordinate changes
    tailor.latitude = data.latitude
    tailor.longitude = data.longitude

    await db.flush()
    await _derive_point(db, tailor)

    await cache.invalidate()

    return {"message": "Location updated"}


async def _derive_point(db: AsyncSession, tailor: Tailor):
    """Re-derive the point for one tailor and commit it with the coordinate write."""
    try:
        await sync_location_points(db, tailor_ids=[tailor.id], commit=False)
        await db.commit()
    except StoreTimeout as e:
        raise _retryable(e)
    except LocationSyncError as e:
        raise HTTPException(status_code=500, detail=f"Could not derive location point: {e}")


@router.post("/tailors/locations/sync", response_model=SyncResponse)
async def sync_locations(
    db: AsyncSession = Depends(get_db),
    cache: SearchCache = Depends(get_cache),
):
    try:
        result = await sync_location_points(db)
    except StoreTimeout as e:
        raise _retryable(e)
    except LocationSyncError as e:
        raise HTTPException(status_code=500, detail=f"Location sync failed: {e}")

    if result.updated_count:
        await cache.invalidate()

    return SyncResponse(updated_count=result.updated_count, warnings=result.warnings)
