from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8)
    phone: Optional[str] = None

class UserLogin(BaseModel):
    email: str
    password: str

class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    is_active: bool
    is_admin: bool

    class Config:
        from_attributes = True

class TokenData(BaseModel):
    email: Optional[str] = None

class AddressCreate(BaseModel):
    type: str = "home"
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    company: Optional[str] = None
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: Optional[str] = None
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = Field("US", min_length=2, max_length=2)
    phone: Optional[str] = None
    is_default: bool = False

class AddressResponse(AddressCreate):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True
