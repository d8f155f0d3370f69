from typing import Dict, List

import config
from .base import ShippingCarrier, UnsupportedCarrierError
from .coordinadora_carrier import CoordinadoraCarrier

CARRIERS = {
    "coordinadora": CoordinadoraCarrier,
}


class ShippingCarrierFactory:
    @staticmethod
    def create(name: str) -> ShippingCarrier:
        carrier_class = CARRIERS.get(name)
        if carrier_class is None:
            raise UnsupportedCarrierError(f"Unsupported shipping carrier: {name}")
        return carrier_class()

    @staticmethod
    def available_carriers() -> List[str]:
        return list(CARRIERS)

    @staticmethod
    def enabled_carriers() -> List[str]:
        return [name for name in CARRIERS if ShippingCarrierFactory.is_enabled(name)]

    @staticmethod
    def is_supported(name: str) -> bool:
        return name in CARRIERS

    @staticmethod
    def is_enabled(name: str) -> bool:
        carrier_class = CARRIERS.get(name)
        if carrier_class is None:
            return False
        # Switched on in settings and holding credentials
        return bool(config.SHIPPING_CARRIERS.get(name, {}).get("enabled")) and carrier_class().is_configured()

    @staticmethod
    def carrier_configs() -> Dict[str, dict]:
        return {name: carrier_class().get_config() for name, carrier_class in CARRIERS.items()}
