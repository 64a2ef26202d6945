from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geography

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade():
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    op.add_column(
        "tailors",
        sa.Column(
            "location_point",
            Geography(geometry_type="POINT", srid=4326, spatial_index=False),
            nullable=True,
        ),
    )

    # Backfill existing rows (longitude first)
    op.execute(
        """
        UPDATE tailors
        SET location_point = ST_SetSRID(ST_MakePoint(longitude, latitude), 4326)::geography
        WHERE latitude IS NOT NULL
          AND longitude IS NOT NULL
          AND location_point IS NULL
        """
    )

    op.create_index(
        "ix_tailors_location_point",
        "tailors",
        ["location_point"],
        unique=False,
        postgresql_using="gist",
    )
    op.create_index(
        "ix_tailors_skills",
        "tailors",
        ["skills"],
        unique=False,
        postgresql_using="gin",
    )


def downgrade():
    op.drop_index("ix_tailors_skills", table_name="tailors")
    op.drop_index("ix_tailors_location_point", table_name="tailors")
    op.drop_column("tailors", "location_point")
