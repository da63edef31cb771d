from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String, nullable=True)
    source = Column(String, nullable=True)  # 'aliexpress' | 'alibaba'
    title = Column(String, nullable=False)
    price = Column(Float, nullable=True)
    currency = Column(String, default="USD")
    niche = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="products")
    analyses = relationship("ProductAnalysis", back_populates="product", cascade="all, delete-orphan")


class ProductAnalysis(Base):
    __tablename__ = "product_analyses"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    verdict = Column(String, nullable=True)
    confidence_score = Column(Float, nullable=True)
    launch_potential_score = Column(Float, nullable=True)
    launch_tier = Column(String, nullable=True)
    time_to_first_sale_days = Column(Integer, nullable=True)
    time_to_first_sale_with_ads_days = Column(Integer, nullable=True)
    summary = Column(Text, nullable=True)
    full_analysis = Column(JSON, nullable=True)  # raw model output
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="analyses")
    user = relationship("User", back_populates="analyses")
