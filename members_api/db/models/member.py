from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Table, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from members_api.db.base import Base


members_labels = Table(
    "members_labels",
    Base.metadata,
    Column("member_id", Integer, ForeignKey("members.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", Integer, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(191), unique=True, index=True, nullable=False)
    name = Column(String(191), nullable=True)
    note = Column(Text, nullable=True)
    subscribed = Column(Boolean, default=True, nullable=False)
    geolocation = Column(String(2000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    labels = relationship("Label", secondary=members_labels, order_by="Label.name")
    stripe_customers = relationship(
        "StripeCustomer",
        back_populates="member",
        cascade="all, delete-orphan",
        order_by="StripeCustomer.id",
    )
