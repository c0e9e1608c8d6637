"""
Modèle SQLAlchemy générique pour le store de documents.

Chaque ligne = un document JSON d'une collection nommée (trips, members,
payments, claims, history_events, rates). La forme canonique des documents
est portée par les schémas Pydantic, pas par la table.
"""

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint, func

from app.database import Base


class Record(Base):
    __tablename__ = "records"
    __table_args__ = (
        UniqueConstraint("collection", "record_id", name="uq_records_collection_record_id"),
    )

    seq = Column(Integer, primary_key=True, autoincrement=True)  # Ordre d'insertion
    collection = Column(String(50), nullable=False, index=True)
    record_id = Column(String(36), nullable=False)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
