# schemas/product.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional, List


class ProductBase(BaseModel):
    name: str
    description: str = ""
    price: float = Field(..., ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    sku: str
    inventory: int = Field(0, ge=0)
    is_active: bool = True
    popularity: float = 0.0
    images: List[str] = Field(default_factory=list)
    category_id: Optional[str] = None


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    sku: Optional[str] = None
    inventory: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    popularity: Optional[float] = None
    images: Optional[List[str]] = None
    category_id: Optional[str] = None

    # Omit a field to leave it unchanged; only nullable columns accept null
    @field_validator(
        "name", "description", "price", "sku", "inventory", "is_active", "popularity", "images",
        mode="before",
    )
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class CategoryInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
    category: Optional[CategoryInfo] = None


class ProductListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    products: List[ProductResponse]
    total_count: int
    skip: int
    limit: int
