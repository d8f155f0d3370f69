from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models import User
import schemas
from auth import get_current_active_admin
from services import ProductService
from .limiter import limiter

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("")
async def get_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    active_only: bool = True,
    db: Session = Depends(get_db)
):
    """Get all products"""
    products = ProductService.get_products(db, skip, limit, active_only)
    return {"success": True, "data": [schemas.ProductResponse.model_validate(p) for p in products]}


@router.get("/{product_id}")
async def get_product(product_id: int, db: Session = Depends(get_db)):
    """Get a single product by ID"""
    product = ProductService.get_product(db, product_id, active_only=True)
    return {"success": True, "data": schemas.ProductResponse.model_validate(product)}


@router.post("", status_code=201)
@limiter.limit("20/minute")
async def create_product(
    request: Request,
    product: schemas.ProductCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Create a new product (Admin only)"""
    created = ProductService.create_product(db, product.model_dump())
    return {"success": True, "data": schemas.ProductResponse.model_validate(created)}


@router.put("/{product_id}")
@limiter.limit("20/minute")
async def update_product(
    request: Request,
    product_id: int,
    product_update: schemas.ProductUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_active_admin)
):
    """Update a product (Admin only)"""
    db_product = ProductService.get_product(db, product_id)
    updated = ProductService.update_product(db, db_product, product_update.model_dump(exclude_unset=True))
    return {"success": True, "data": schemas.ProductResponse.model_validate(updated)}
