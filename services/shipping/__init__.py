from .base import (
    ShippingCarrier,
    CarrierError,
    UnsupportedCarrierError,
    UnsupportedDestinationError,
    SHIPMENT_STATUSES,
)
from .coordinadora_carrier import CoordinadoraCarrier
from .factory import ShippingCarrierFactory

__all__ = [
    "ShippingCarrier",
    "CarrierError",
    "UnsupportedCarrierError",
    "UnsupportedDestinationError",
    "SHIPMENT_STATUSES",
    "CoordinadoraCarrier",
    "ShippingCarrierFactory"
]
