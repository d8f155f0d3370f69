from sqlalchemy.orm import Session
from models import Product
from typing import List, Optional

from .exceptions import ConflictError, NotFoundError

class ProductService:
    @staticmethod
    def get_products(db: Session, skip: int = 0, limit: int = 100, active_only: bool = True) -> List[Product]:
        query = db.query(Product)
        if active_only:
            query = query.filter(Product.is_active == True)
        return query.order_by(Product.id).offset(skip).limit(limit).all()

    @staticmethod
    def get_product(db: Session, product_id: int, active_only: bool = False) -> Product:
        query = db.query(Product).filter(Product.id == product_id)
        if active_only:
            query = query.filter(Product.is_active == True)
        product = query.first()
        if not product:
            raise NotFoundError("Product not found")
        return product

    @staticmethod
    def _ensure_unique_sku(db: Session, sku: str, exclude_id: Optional[int] = None):
        query = db.query(Product.id).filter(Product.sku == sku)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ConflictError("A product with this SKU already exists")

    @staticmethod
    def create_product(db: Session, product_data: dict) -> Product:
        ProductService._ensure_unique_sku(db, product_data["sku"])
        db_product = Product(**product_data)
        db.add(db_product)
        db.commit()
        db.refresh(db_product)
        return db_product

    @staticmethod
    def update_product(db: Session, db_product: Product, update_data: dict) -> Product:
        for key, value in update_data.items():
            if value is not None:
                setattr(db_product, key, value)
        db.commit()
        db.refresh(db_product)
        return db_product
