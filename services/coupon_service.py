from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Coupon, CouponUsage


class CouponService:
    @staticmethod
    def get_by_code(db: Session, code: str) -> Optional[Coupon]:
        return db.query(Coupon).filter(func.upper(Coupon.code) == code.strip().upper()).first()

    @staticmethod
    def is_valid(coupon: Coupon, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        if not coupon.is_active:
            return False
        if coupon.starts_at and coupon.starts_at > now:
            return False
        if coupon.expires_at and coupon.expires_at < now:
            return False
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            return False
        return True

    @staticmethod
    def is_valid_for_user(db: Session, coupon: Coupon, user_id: Optional[int]) -> bool:
        if not CouponService.is_valid(coupon):
            return False
        if coupon.usage_limit_per_user and user_id is not None:
            used = db.query(func.count(CouponUsage.id)).filter(
                CouponUsage.coupon_id == coupon.id,
                CouponUsage.user_id == user_id
            ).scalar()
            if used >= coupon.usage_limit_per_user:
                return False
        return True

    @staticmethod
    def record_usage(db: Session, coupon: Coupon, user_id: Optional[int], order_id: int, discount: Decimal):
        db.add(CouponUsage(
            coupon_id=coupon.id,
            user_id=user_id,
            order_id=order_id,
            discount_amount=discount
        ))
        coupon.used_count = (coupon.used_count or 0) + 1
