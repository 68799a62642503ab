"""Schema version marker for the local photo database."""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.sql import func
from photostore.models import Base


class SchemaInfo(Base):
    """Single-row table holding the applied schema version.

    Databases written by the original app have no such table; the migrator
    infers their version from the shape of the ``photos`` table and stamps
    the marker afterwards.
    """
    __tablename__ = "schema_info"

    id = Column(Integer, primary_key=True)
    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime, server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)
