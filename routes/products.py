# routes/product.py
from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload
from typing import Optional
import logging

from db.connection import db_dependency, search_dependency
from models.Products import Product
from models.Categories import Category
from schemas.productManagement.Products import (
    ProductCreate, ProductResponse, ProductUpdate, ProductListResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


def _get_product_or_404(db, product_id: str) -> Product:
    product = db.execute(
        select(Product).options(joinedload(Product.category)).where(Product.id == product_id)
    ).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _check_category(db, category_id: Optional[str]) -> None:
    if category_id and db.get(Category, category_id) is None:
        raise HTTPException(status_code=400, detail="Category does not exist")


def _sync_search_index(search_service, product: Product) -> None:
    # Deactivated products leave the index; everything else is upserted
    if product.is_active:
        search_service.index_entry(product)
    else:
        search_service.remove_entry(product.id)


@router.get("", response_model=ProductListResponse)
def get_products(
    db: db_dependency,
    skip: int = 0,
    limit: int = 20,
    category_id: Optional[str] = None,
):
    conditions = [Product.is_active.is_(True)]
    if category_id:
        conditions.append(Product.category_id == category_id)

    total_count = db.execute(
        select(func.count()).select_from(Product).where(*conditions)
    ).scalar_one()
    products = db.execute(
        select(Product)
        .options(joinedload(Product.category))
        .where(*conditions)
        .order_by(Product.created_at.desc(), Product.id.asc())
        .offset(skip)
        .limit(limit)
    ).scalars().all()

    return ProductListResponse(products=products, total_count=total_count, skip=skip, limit=limit)


@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, db: db_dependency):
    return _get_product_or_404(db, product_id)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(product: ProductCreate, db: db_dependency, search_service: search_dependency):
    _check_category(db, product.category_id)

    db_product = Product(**product.model_dump())
    db.add(db_product)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="SKU already exists")

    db_product = _get_product_or_404(db, db_product.id)
    logger.info(f"Product created with ID: {db_product.id}")

    _sync_search_index(search_service, db_product)
    return db_product


@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    product: ProductUpdate,
    db: db_dependency,
    search_service: search_dependency,
):
    db_product = _get_product_or_404(db, product_id)

    update_data = product.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        _check_category(db, update_data["category_id"])

    for key, value in update_data.items():
        setattr(db_product, key, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="SKU already exists")

    db_product = _get_product_or_404(db, product_id)
    logger.info(f"Product {product_id} updated")

    _sync_search_index(search_service, db_product)
    return db_product


@router.delete("/{product_id}")
def delete_product(product_id: str, db: db_dependency, search_service: search_dependency):
    db_product = _get_product_or_404(db, product_id)
    db.delete(db_product)
    db.commit()
    logger.info(f"Product {product_id} deleted")

    search_service.remove_entry(product_id)
    return {"message": "Product deleted successfully"}
