from sqlalchemy import Column, Float, Integer, Text
from photostore.models import Base


class Photo(Base):
    __tablename__ = "photos"
    # AUTOINCREMENT keeps SQLite from handing out the id of a deleted row again.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    # No UNIQUE constraint: legacy databases already hold duplicate uris and
    # delete-by-uri removes every match.
    uri = Column(Text, nullable=False)
    # Added in schema v2; both stay NULL for captures without a location fix.
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
