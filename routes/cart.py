from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session
from typing import Optional
import uuid

from database import get_db
from models import User
import schemas
from auth import get_current_user, get_optional_user
from services import CartService
from .limiter import limiter

router = APIRouter(prefix="/api/cart", tags=["Cart"])

CART_SESSION_COOKIE = "cart_session"
CART_SESSION_HEADER = "X-Cart-Session"


def get_cart_session(request: Request) -> Optional[str]:
    """Guest cart key from the cookie, or the header for non-browser clients"""
    return request.cookies.get(CART_SESSION_COOKIE) or request.headers.get(CART_SESSION_HEADER)


def _remember_session(response: Response, session_id: str):
    response.set_cookie(
        key=CART_SESSION_COOKIE,
        value=session_id,
        max_age=2592000,  # 30 days
        httponly=True,
        samesite="lax"
    )


def _cart_payload(items) -> dict:
    summary = CartService.summary(items)
    return {
        "items": [schemas.CartItemResponse.model_validate(item) for item in items],
        "summary": schemas.CartSummary(items_count=summary["items_count"], subtotal=float(summary["subtotal"]))
    }


def _owner(user: Optional[User]):
    return user.id if user else None


@router.get("")
async def get_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Cart of the logged in user, or of the guest session"""
    items = CartService.get_items(db, _owner(current_user), get_cart_session(request))
    return {"success": True, "data": _cart_payload(items)}


@router.post("/items", status_code=201)
@limiter.limit("60/minute")
async def add_item(
    request: Request,
    response: Response,
    item: schemas.CartItemAdd,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Add a product to the cart"""
    session_id = get_cart_session(request)
    if current_user is None and not session_id:
        session_id = uuid.uuid4().hex
        _remember_session(response, session_id)

    cart_item = CartService.add_item(
        db, _owner(current_user), session_id,
        item.product_id, item.quantity, item.variant_options
    )
    return {
        "success": True,
        "message": "Item added to cart",
        "data": schemas.CartItemResponse.model_validate(cart_item),
        "session_id": session_id if current_user is None else None
    }


@router.put("/items/{item_id}")
@limiter.limit("60/minute")
async def update_item(
    request: Request,
    item_id: int,
    item_update: schemas.CartItemUpdate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    """Change the quantity of a cart line"""
    cart_item = CartService.update_item(
        db, _owner(current_user), get_cart_session(request), item_id, item_update.quantity
    )
    return {"success": True, "message": "Cart updated", "data": schemas.CartItemResponse.model_validate(cart_item)}


@router.delete("/items/{item_id}")
async def remove_item(
    request: Request,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    CartService.remove_item(db, _owner(current_user), get_cart_session(request), item_id)
    return {"success": True, "message": "Item removed from cart"}


@router.delete("")
async def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    CartService.clear(db, _owner(current_user), get_cart_session(request))
    return {"success": True, "message": "Cart cleared"}


@router.get("/count")
async def cart_count(
    request: Request,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    items = CartService.get_items(db, _owner(current_user), get_cart_session(request))
    return {"success": True, "data": {"count": CartService.summary(items)["items_count"]}}


@router.post("/sync")
async def sync_cart(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Merge the guest cart into the user's cart after login"""
    merged = CartService.sync(db, current_user.id, get_cart_session(request))
    response.delete_cookie(CART_SESSION_COOKIE)
    items = CartService.get_items(db, current_user.id, None)
    return {"success": True, "message": "Cart synced", "data": {"merged_lines": merged, **_cart_payload(items)}}
