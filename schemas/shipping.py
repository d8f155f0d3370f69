from pydantic import BaseModel, Field
from typing import Optional

class PackageDimensions(BaseModel):
    length: float = Field(..., gt=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)

class ShippingDestination(BaseModel):
    destination_city: str = Field(..., min_length=1, max_length=100)
    destination_state: str = Field(..., min_length=1, max_length=100)
    destination_country: str = Field(..., min_length=2, max_length=2)
    destination_postal_code: Optional[str] = Field(None, max_length=20)
    weight: float = Field(..., ge=0.1)
    dimensions: Optional[PackageDimensions] = None
    declared_value: Optional[float] = Field(None, ge=0)

    def to_destination(self) -> dict:
        return {
            "city": self.destination_city,
            "state": self.destination_state,
            "country": self.destination_country.upper(),
            "postal_code": self.destination_postal_code,
            "weight": self.weight,
            "dimensions": self.dimensions.model_dump() if self.dimensions else None,
            "declared_value": self.declared_value,
        }

class ShippingQuoteRequest(ShippingDestination):
    carrier: str = Field(..., max_length=50)
    service_type: str = Field(..., max_length=50)
    origin_city: Optional[str] = Field(None, max_length=100)
    origin_state: Optional[str] = Field(None, max_length=100)

class TrackingRequest(BaseModel):
    carrier: str = Field(..., max_length=50)
    tracking_number: str = Field(..., min_length=1, max_length=100)

class ShippingLabelCreate(BaseModel):
    carrier: str = Field(..., max_length=50)
    service_type: str = Field(..., max_length=50)
    weight: Optional[float] = Field(None, ge=0.1)
    dimensions: Optional[PackageDimensions] = None
    notes: Optional[str] = Field(None, max_length=500)
