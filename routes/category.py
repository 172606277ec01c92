# routes/category.py
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import List

from db.connection import db_dependency, search_dependency
from models.Categories import Category
from models.Products import Product
from schemas.productManagement.category import CategoryCreate, CategoryResponse

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=List[CategoryResponse])
def get_categories(
    db: db_dependency,
    skip: int = 0,
    limit: int = 10000,
):
    return db.execute(
        select(Category).where(Category.is_active.is_(True)).order_by(Category.name).offset(skip).limit(limit)
    ).scalars().all()


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: str, db: db_dependency):
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(category: CategoryCreate, db: db_dependency):
    # Check if slug already exists
    if db.execute(select(Category).where(Category.slug == category.slug)).first():
        raise HTTPException(status_code=400, detail="Slug already exists")

    db_category = Category(**category.model_dump())
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: str,
    category: CategoryCreate,
    db: db_dependency,
    search_service: search_dependency,
):
    db_category = db.get(Category, category_id)
    if not db_category:
        raise HTTPException(status_code=404, detail="Category not found")

    for key, value in category.model_dump().items():
        setattr(db_category, key, value)

    db.commit()
    db.refresh(db_category)

    # Indexed products carry the category name
    products = db.execute(
        select(Product)
        .options(selectinload(Product.category))
        .where(Product.category_id == category_id, Product.is_active.is_(True))
    ).scalars().all()
    for product in products:
        search_service.index_entry(product)

    return db_category
