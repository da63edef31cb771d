from sqlalchemy import Column, Integer, String, DateTime, Float
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class User(Base):
    __tablename__ = "users"

    # Identity-provider user id (uuid string)
    id = Column(String(64), primary_key=True, index=True)
    email = Column(String, index=True, nullable=True)

    subscription_plan = Column(String, nullable=False, default="FREE")
    subscription_status = Column(String, nullable=False, default="inactive")
    # Fractional credits (0.5 per analysis)
    analysis_used_this_month = Column(Float, nullable=False, default=0.0)
    analysis_quota = Column(Integer, nullable=True, default=0)  # -1 = unlimited
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    stripe_customer_id = Column(String, index=True, nullable=True)
    stripe_subscription_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    subscription = relationship(
        "Subscription", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    products = relationship("Product", back_populates="user", cascade="all, delete-orphan")
    analyses = relationship("ProductAnalysis", back_populates="user", cascade="all, delete-orphan")
