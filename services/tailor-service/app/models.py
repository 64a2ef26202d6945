from sqlalchemy import Column, Integer, String, Float, DateTime, event, func
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm.attributes import NO_VALUE

from .db import Base
from .geo import GEOGRAPHY_POINT


class Tailor(Base):
    __tablename__ = "tailors"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    full_name = Column(String, nullable=True)
    location = Column(String, nullable=True)  # LocalityZone code
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # derived from (longitude, latitude); written only by location_sync
    location_point = Column(GEOGRAPHY_POINT, nullable=True)

    skills = Column(ARRAY(String), nullable=False, default=list, server_default="{}")
    years_experience = Column(Integer, nullable=True)
    rating = Column(Float, nullable=False, default=0.0, server_default="0")
    review_count = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


def _invalidate_location_point(target: Tailor, value, oldvalue, initiator):
    if oldvalue is NO_VALUE or value != oldvalue:
        target.location_point = None
    return value


event.listen(Tailor.latitude, "set", _invalidate_location_point, retval=True)
event.listen(Tailor.longitude, "set", _invalidate_location_point, retval=True)
