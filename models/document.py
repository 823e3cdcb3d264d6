from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from database import Base


class StoredDocument(Base):
    """One JSON document of a logical collection, guarded by an optimistic version counter."""

    __tablename__ = "documents"
    __table_args__ = {"extend_existing": True}

    collection = Column(String(64), primary_key=True)
    doc_id = Column(String(160), primary_key=True)
    body = Column(JSON, nullable=False, default=dict)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
