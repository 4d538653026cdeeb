# db/models.py
"""
Warehouse bookkeeping models.

Relation contents live in versioned physical tables named
``<layer>__<relation>__v<version>``; the pointer table records which version
is the committed one for each (layer, relation).
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RelationPointer(Base):
    """Currently committed version of a layer relation."""

    __tablename__ = "dwh_relation_pointer"
    __table_args__ = (UniqueConstraint("layer", "relation", name="uq_relation_pointer"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    layer = Column(String(20), nullable=False)
    relation = Column(String(100), nullable=False)
    version = Column(Integer, nullable=False)
    physical_table = Column(String(200), nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    run_id = Column(String(40))
    committed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<RelationPointer({self.layer}.{self.relation} -> v{self.version}, rows={self.row_count})>"
