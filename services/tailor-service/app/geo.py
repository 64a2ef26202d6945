from enum import Enum

from geoalchemy2 import Geography
from geoalchemy2.functions import ST_MakePoint, ST_SetSRID
from shapely.geometry import Point
from sqlalchemy import Float, bindparam, cast

SRID_WGS84 = 4326

GEOGRAPHY_POINT = Geography(geometry_type="POINT", srid=SRID_WGS84, spatial_index=False)


class LocalityZone(str, Enum):
    MG_ROAD = "MG_ROAD"
    COMMERCIAL_STREET = "COMMERCIAL_STREET"


# (latitude, longitude)
ZONE_COORDINATES: dict[LocalityZone, tuple[float, float]] = {
    LocalityZone.MG_ROAD: (12.9716, 77.5946),
    LocalityZone.COMMERCIAL_STREET: (12.9833, 77.6089),
}


class Skill(str, Enum):
    ALTERATIONS = "ALTERATIONS"
    CUSTOM_FITTING = "CUSTOM_FITTING"
    BRIDAL_WORK = "BRIDAL_WORK"
    ETHNIC_WEAR = "ETHNIC_WEAR"
    EMBROIDERY = "EMBROIDERY"
    STITCHING = "STITCHING"
    WESTERN_WEAR = "WESTERN_WEAR"
    BUTTON_WORK = "BUTTON_WORK"
    ZIPPER_REPAIR = "ZIPPER_REPAIR"
    HAND_STITCHING = "HAND_STITCHING"
    HEMMING = "HEMMING"
    FORMAL_WEAR = "FORMAL_WEAR"


def resolve_zone(name: str | None) -> tuple[float, float] | None:
    """
    Zone code -> (latitude, longitude). Unknown or empty names resolve to None.
    """
    if not name:
        return None
    try:
        zone = LocalityZone(name.strip().upper())
    except ValueError:
        return None
    return ZONE_COORDINATES[zone]


def km_to_meters(km: float) -> float:
    return km * 1000.0


def to_shape_point(lat: float, lng: float) -> Point:
    # shapely is x/y: longitude is x
    return Point(lng, lat)


def point_from_columns(lng, lat):
    """
    ST_SetSRID(ST_MakePoint(lng, lat), 4326)::geography

    Argument order is longitude, latitude. Accepts columns or bound values.
    """
    return cast(ST_SetSRID(ST_MakePoint(lng, lat), SRID_WGS84), GEOGRAPHY_POINT)


def reference_point(lat: float, lng: float):
    """
    Geography expression for a caller-supplied reference location.

    Build it once per statement and reuse the returned expression so the
    bound ref_lng/ref_lat parameters appear once in the compiled query.
    """
    point = to_shape_point(lat, lng)
    return point_from_columns(
        bindparam("ref_lng", point.x, type_=Float),
        bindparam("ref_lat", point.y, type_=Float),
    )
