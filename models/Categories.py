from sqlalchemy import Column, String, Text, DateTime, Boolean, Index
from sqlalchemy.orm import relationship
from db.database import Base
from datetime import datetime
import uuid


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    products = relationship("Product", back_populates="category")

    __table_args__ = (
        Index("idx_category_name", "name"),
    )
