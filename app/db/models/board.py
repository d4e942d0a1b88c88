from sqlalchemy import Column, String, DateTime, func
from app.db.base import Base

class BoardRecord(Base):
    """Catalog entry for a board; the live board lives in the sync store."""

    __tablename__ = "boards"

    id = Column(String(32), primary_key=True, index=True)
    title = Column(String, nullable=False)
    owner = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
