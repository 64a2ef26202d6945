"""
Proximity search over tailors.

Everything that depends on distance (the radius predicate, the distance value
and the ordering) is evaluated by PostGIS in a single statement; the
application never loops over tailors to compute or filter distances.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

from geoalchemy2.functions import ST_Distance, ST_DWithin
from sqlalchemy import Float, bindparam, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import translate_store_error
from .geo import km_to_meters, reference_point, resolve_zone
from .models import Tailor

logger = logging.getLogger(__name__)


class SortMode(str, Enum):
    DISTANCE = "distance"
    RECENCY = "recency"
    EXPERIENCE = "experience"
    RATING = "rating"


@dataclass(frozen=True)
class SearchQuery:
    latitude: float | None = None
    longitude: float | None = None
    zone: str | None = None
    max_distance_km: float | None = None
    skills: tuple[str, ...] = ()
    min_experience: int | None = None
    max_experience: int | None = None
    sort_by: SortMode = SortMode.DISTANCE
    limit: int = 12
    offset: int = 0


@dataclass(frozen=True)
class ResolvedReference:
    latitude: float | None = None
    longitude: float | None = None
    unmatched: bool = False

    @property
    def present(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class TailorMatch(NamedTuple):
    tailor: Tailor
    distance_km: float | None


@dataclass
class SearchPage:
    items: list[TailorMatch]
    total: int


def resolve_reference(query: SearchQuery) -> ResolvedReference:
    if query.zone is not None:
        coords = resolve_zone(query.zone)
        if coords is None:
            return ResolvedReference(unmatched=True)
        lat, lng = coords
        return ResolvedReference(latitude=lat, longitude=lng)

    if query.latitude is not None and query.longitude is not None:
        return ResolvedReference(latitude=query.latitude, longitude=query.longitude)

    return ResolvedReference()


def effective_sort(query: SearchQuery, ref: ResolvedReference) -> SortMode:
    # no reference point, nothing to rank distance against
    if query.sort_by == SortMode.DISTANCE and not ref.present:
        return SortMode.RECENCY
    return query.sort_by


def _filters(query: SearchQuery, ref_point):
    conditions = []

    if ref_point is not None and query.max_distance_km is not None:
        conditions.append(Tailor.location_point.is_not(None))
        conditions.append(
            ST_DWithin(
                Tailor.location_point,
                ref_point,
                bindparam("radius_m", km_to_meters(query.max_distance_km), type_=Float),
            )
        )

    if query.skills:
        # any of the requested skills
        conditions.append(Tailor.skills.overlap(list(query.skills)))

    if query.min_experience is not None:
        conditions.append(Tailor.years_experience >= query.min_experience)
    if query.max_experience is not None:
        conditions.append(Tailor.years_experience <= query.max_experience)

    return conditions


def _order_by(sort: SortMode, distance_col):
    if sort == SortMode.DISTANCE:
        return [distance_col.asc().nulls_last(), Tailor.id.asc()]
    if sort == SortMode.EXPERIENCE:
        return [Tailor.years_experience.desc().nulls_last(), Tailor.id.asc()]
    if sort == SortMode.RATING:
        return [Tailor.rating.desc(), Tailor.id.asc()]
    return [Tailor.created_at.desc(), Tailor.id.asc()]


def build_search_statement(query: SearchQuery, ref: ResolvedReference):
    ref_point = reference_point(ref.latitude, ref.longitude) if ref.present else None

    columns = [Tailor]
    distance_col = None
    if ref_point is not None:
        distance_col = (ST_Distance(Tailor.location_point, ref_point) / 1000.0).label("distance_km")
        columns.append(distance_col)
    # total of the filtered set, computed alongside the page
    columns.append(func.count().over().label("total"))

    return (
        select(*columns)
        .where(*_filters(query, ref_point))
        .order_by(*_order_by(effective_sort(query, ref), distance_col))
        .limit(query.limit)
        .offset(query.offset)
    )


def build_count_statement(query: SearchQuery, ref: ResolvedReference):
    ref_point = reference_point(ref.latitude, ref.longitude) if ref.present else None
    return select(func.count()).select_from(Tailor).where(*_filters(query, ref_point))


async def search_tailors(session: AsyncSession, query: SearchQuery) -> SearchPage:
    ref = resolve_reference(query)
    if ref.unmatched:
        logger.info("unknown locality zone %r, returning no tailors", query.zone)
        return SearchPage(items=[], total=0)

    try:
        rows = (await session.execute(build_search_statement(query, ref))).all()
        if rows:
            total = rows[0].total
        elif query.offset:
            # past the last page: the window count has no row to ride on
            total = (await session.execute(build_count_statement(query, ref))).scalar_one()
        else:
            total = 0
    except (SQLAlchemyError, asyncio.TimeoutError) as e:
        translated = translate_store_error(e)
        if translated is e:
            raise
        raise translated from e

    if ref.present:
        items = [TailorMatch(row[0], None if row.distance_km is None else float(row.distance_km)) for row in rows]
    else:
        items = [TailorMatch(row[0], None) for row in rows]

    return SearchPage(items=items, total=int(total))
