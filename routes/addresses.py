from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models import User, UserAddress
import schemas
from auth import get_current_user
from services import NotFoundError

router = APIRouter(prefix="/api/addresses", tags=["Addresses"])


def _get_address(db: Session, user: User, address_id: int) -> UserAddress:
    address = db.query(UserAddress).filter(
        UserAddress.id == address_id,
        UserAddress.user_id == user.id
    ).first()
    if not address:
        raise NotFoundError("Address not found")
    return address


@router.get("")
async def list_addresses(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    addresses = db.query(UserAddress).filter(UserAddress.user_id == current_user.id).order_by(
        UserAddress.is_default.desc(), UserAddress.id
    ).all()
    return {"success": True, "data": [schemas.AddressResponse.model_validate(a) for a in addresses]}


@router.post("", status_code=201)
async def create_address(
    address_data: schemas.AddressCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Save an address; the first one, or one flagged is_default, becomes the default"""
    has_addresses = db.query(UserAddress.id).filter(UserAddress.user_id == current_user.id).first() is not None
    make_default = address_data.is_default or not has_addresses

    if make_default:
        db.query(UserAddress).filter(UserAddress.user_id == current_user.id).update(
            {UserAddress.is_default: False}, synchronize_session=False
        )

    address = UserAddress(user_id=current_user.id, **address_data.model_dump(exclude={"is_default"}))
    address.is_default = make_default
    db.add(address)
    db.commit()
    db.refresh(address)
    return {"success": True, "data": schemas.AddressResponse.model_validate(address)}


@router.get("/{address_id}")
async def get_address(address_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    address = _get_address(db, current_user, address_id)
    return {"success": True, "data": schemas.AddressResponse.model_validate(address)}


@router.delete("/{address_id}")
async def delete_address(address_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    address = _get_address(db, current_user, address_id)
    was_default = address.is_default
    db.delete(address)
    db.flush()

    if was_default:
        replacement = db.query(UserAddress).filter(UserAddress.user_id == current_user.id).order_by(UserAddress.id).first()
        if replacement:
            replacement.is_default = True
    db.commit()
    return {"success": True, "message": "Address deleted successfully"}
