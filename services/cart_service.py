from sqlalchemy.orm import Session, joinedload
from typing import List, Optional
import logging

import config
from models import CartItem, Product
from .exceptions import BusinessRuleError, NotFoundError
from .totals import calculate_subtotal

logger = logging.getLogger(__name__)


class CartService:
    """Cart rows belong either to a user or, for guests, to a session id."""

    @staticmethod
    def _scoped(db: Session, user_id: Optional[int], session_id: Optional[str]):
        query = db.query(CartItem).options(joinedload(CartItem.product))
        if user_id is not None:
            return query.filter(CartItem.user_id == user_id)
        if session_id:
            return query.filter(CartItem.user_id.is_(None), CartItem.session_id == session_id)
        return None

    @staticmethod
    def get_items(db: Session, user_id: Optional[int], session_id: Optional[str]) -> List[CartItem]:
        query = CartService._scoped(db, user_id, session_id)
        if query is None:
            return []
        return query.order_by(CartItem.created_at).all()

    @staticmethod
    def snapshot(db: Session, user_id: int) -> List[CartItem]:
        """Current cart rows of a user with their products loaded."""
        return CartService.get_items(db, user_id, None)

    @staticmethod
    def summary(items: List[CartItem]) -> dict:
        return {
            "items_count": sum(item.quantity for item in items),
            "subtotal": calculate_subtotal(items),
        }

    @staticmethod
    def add_item(db: Session, user_id: Optional[int], session_id: Optional[str],
                 product_id: int, quantity: int, variant_options: Optional[dict] = None) -> CartItem:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")
        if not product.is_active or product.inventory_quantity < quantity:
            raise BusinessRuleError("Product is not available or insufficient stock")

        variant_options = variant_options or {}
        existing = next(
            (item for item in CartService.get_items(db, user_id, session_id)
             if item.product_id == product.id and (item.variant_options or {}) == variant_options),
            None
        )

        if existing:
            new_quantity = min(existing.quantity + quantity, config.CART_MAX_QUANTITY)
            if new_quantity > product.inventory_quantity:
                raise BusinessRuleError("Insufficient stock for requested quantity")
            existing.quantity = new_quantity
            cart_item = existing
        else:
            cart_item = CartItem(
                user_id=user_id,
                session_id=None if user_id is not None else session_id,
                product_id=product.id,
                quantity=quantity,
                unit_price=product.price,
                variant_options=variant_options
            )
            db.add(cart_item)

        db.commit()
        db.refresh(cart_item)
        return cart_item

    @staticmethod
    def _find(db: Session, user_id: Optional[int], session_id: Optional[str], item_id: int) -> CartItem:
        query = CartService._scoped(db, user_id, session_id)
        cart_item = query.filter(CartItem.id == item_id).first() if query is not None else None
        if not cart_item:
            raise NotFoundError("Cart item not found")
        return cart_item

    @staticmethod
    def update_item(db: Session, user_id: Optional[int], session_id: Optional[str],
                    item_id: int, quantity: int) -> CartItem:
        cart_item = CartService._find(db, user_id, session_id, item_id)
        if cart_item.product.inventory_quantity < quantity:
            raise BusinessRuleError("Insufficient stock for requested quantity")
        cart_item.quantity = quantity
        db.commit()
        db.refresh(cart_item)
        return cart_item

    @staticmethod
    def remove_item(db: Session, user_id: Optional[int], session_id: Optional[str], item_id: int):
        cart_item = CartService._find(db, user_id, session_id, item_id)
        db.delete(cart_item)
        db.commit()

    @staticmethod
    def clear(db: Session, user_id: Optional[int], session_id: Optional[str], commit: bool = True) -> int:
        if user_id is not None:
            query = db.query(CartItem).filter(CartItem.user_id == user_id)
        elif session_id:
            query = db.query(CartItem).filter(CartItem.user_id.is_(None), CartItem.session_id == session_id)
        else:
            return 0
        deleted = query.delete(synchronize_session=False)
        if commit:
            db.commit()
        return deleted

    @staticmethod
    def sync(db: Session, user_id: int, session_id: Optional[str]) -> int:
        """Move a guest cart into the user's cart, merging duplicate lines.

        Merged quantities are capped at the product's stock and the per-line
        maximum; a line left with nothing in stock is dropped. Returns the
        number of guest lines consumed.
        """
        if not session_id:
            return 0

        guest_items = CartService.get_items(db, None, session_id)
        user_items = CartService.get_items(db, user_id, None)

        for guest_item in guest_items:
            match = next(
                (item for item in user_items
                 if item.product_id == guest_item.product_id
                 and (item.variant_options or {}) == (guest_item.variant_options or {})),
                None
            )
            if match:
                merged = match.quantity + guest_item.quantity
                capped = min(merged, guest_item.product.inventory_quantity, config.CART_MAX_QUANTITY)
                if capped > 0:
                    match.quantity = capped
                else:
                    db.delete(match)
                db.delete(guest_item)
            else:
                guest_item.user_id = user_id
                guest_item.session_id = None

        db.commit()
        logger.info("Guest cart synced", extra={"user_id": user_id, "lines": len(guest_items)})
        return len(guest_items)
