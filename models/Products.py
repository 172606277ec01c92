from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, Float,
    Boolean, DateTime, JSON
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from db.database import Base
from models.Categories import Category
from datetime import datetime
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")

    price = Column(Float, nullable=False)
    compare_at_price = Column(Float, nullable=True)

    sku = Column(String(100), unique=True, nullable=False, index=True)
    inventory = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, index=True)
    popularity = Column(Float, default=0.0)

    # Images as array of URLs
    images = Column(JSON().with_variant(JSONB, "postgresql"), default=list)
    # Example: ["/static/images/products/p1.jpg", "/static/images/products/p1_b.jpg"]

    # Relationships
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)
    category = relationship(Category, back_populates="products")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
