import sys
import os
from decimal import Decimal

# Add parent directory to path so we can import from root
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base, engine, session_scope
from models import Product, User, Coupon
from auth import get_password_hash
from sqlalchemy import func

SEED_PRODUCTS = [
    ("Wireless Headphones", "AUD-WH-001", "Over-ear bluetooth headphones with noise cancelling", "89.99", 50, "0.350"),
    ("Mechanical Keyboard", "KEY-MK-002", "Tenkeyless keyboard with hot-swappable switches", "120.00", 30, "1.100"),
    ("USB-C Charger 65W", "PWR-UC-003", "GaN wall charger with two USB-C ports", "39.50", 100, "0.150"),
    # No weight: shipping falls back to the default per-unit weight
    ("Standing Desk Mat", "OFF-DM-004", "Anti-fatigue mat for standing desks", "45.00", 20, None),
]


def _seed_admin(db):
    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.com").lower()
    if db.query(User).filter(User.email == admin_email).first():
        return
    db.add(User(
        name="Administrator",
        email=admin_email,
        hashed_password=get_password_hash(os.getenv("ADMIN_PASSWORD", "admin12345")),
        is_active=True,
        is_admin=True
    ))
    print(f"Admin user created with email: {admin_email}")


def _seed_products(db):
    if db.query(func.count(Product.id)).scalar():
        return
    for name, sku, description, price, stock, weight in SEED_PRODUCTS:
        db.add(Product(
            name=name,
            sku=sku,
            description=description,
            price=Decimal(price),
            inventory_quantity=stock,
            weight=Decimal(weight) if weight else None
        ))
    print(f"Added {len(SEED_PRODUCTS)} products")


def _seed_coupons(db):
    if db.query(Coupon).filter(Coupon.code == "WELCOME10").first():
        return
    db.add(Coupon(
        code="WELCOME10",
        name="10% off your first order",
        type="percentage",
        value=Decimal("10"),
        max_discount_amount=Decimal("50"),
        usage_limit_per_user=1,
        is_active=True
    ))
    print("Added coupon WELCOME10")


def init_database():
    """Initialize database with tables and seed data"""
    Base.metadata.create_all(bind=engine)

    try:
        with session_scope() as db:
            _seed_admin(db)
            _seed_products(db)
            _seed_coupons(db)
    except Exception as e:
        print(f"Error initializing database: {e}")
        raise
    print("Database initialized successfully!")


if __name__ == "__main__":
    init_database()
