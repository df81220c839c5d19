from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from members_api.db.base import Base


class Label(Base):
    __tablename__ = "labels"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(191), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
