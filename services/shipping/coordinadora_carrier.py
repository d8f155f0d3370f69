from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import logging

from .base import CarrierError, ShippingCarrier, UnsupportedDestinationError, normalize_place

logger = logging.getLogger(__name__)

# DANE municipality codes for the cities we ship to most
CITY_CODES = {
    "bogota": "11001",
    "bogota d.c.": "11001",
    "medellin": "05001",
    "cali": "76001",
    "barranquilla": "08001",
    "cartagena": "13001",
    "bucaramanga": "68001",
    "pereira": "66001",
    "manizales": "17001",
    "cucuta": "54001",
    "santa marta": "47001",
    "ibague": "73001",
    "villavicencio": "50001",
}

SERVICE_LEVELS = {"express": "1", "standard": "2", "economy": "3"}
LEVEL_SERVICES = {level: service for service, level in SERVICE_LEVELS.items()}

STATUS_MAP = {
    "recogido": "picked_up",
    "picked_up": "picked_up",
    "en_transito": "in_transit",
    "in_transit": "in_transit",
    "en_reparto": "out_for_delivery",
    "out_for_delivery": "out_for_delivery",
    "entregado": "delivered",
    "delivered": "delivered",
    "devuelto": "returned",
    "returned": "returned",
    "excepcion": "exception",
    "exception": "exception",
}

DEFAULT_DECLARED_VALUE = 50000
DEFAULT_DIMENSIONS = {"length": 10, "width": 10, "height": 10}


class CoordinadoraCarrier(ShippingCarrier):
    """Coordinadora (Colombia) quoting, waybills and tracking."""

    name = "coordinadora"
    display_name = "Coordinadora"
    currency = "COP"
    countries = ["CO"]
    services = {"express": "Express", "standard": "Standard", "economy": "Economy"}
    max_weight = 70.0
    max_dimensions = {"length": 150, "width": 150, "height": 150}

    def _headers(self):
        return {"Authorization": f"Bearer {self.settings.get('api_key', '')}"}

    def _account(self) -> dict:
        return {"nit": self.settings.get("nit", ""), "div": "01", "cuenta": self.settings.get("account", "")}

    def city_code(self, place: dict) -> str:
        if place.get("city_code"):
            return place["city_code"]
        code = CITY_CODES.get(normalize_place(place.get("city", "")))
        if code is None:
            raise UnsupportedDestinationError(f"{self.display_name} does not deliver to {place.get('city')}")
        return code

    def _quote(self, quote: dict) -> dict:
        service_type = LEVEL_SERVICES.get(str(quote.get("nivel_servicio")), "standard")
        return {
            "service_code": quote.get("codigo_producto", service_type),
            "service_name": quote.get("nombre_producto", self.services.get(service_type, "")),
            "service_type": service_type,
            "price": Decimal(str(quote.get("flete", 0))),
            "estimated_days": int(quote.get("tiempo_entrega", 0)),
            "description": quote.get("descripcion", ""),
            "currency": self.currency,
        }

    def default_methods(self) -> List[dict]:
        """Published list prices, used when the quoting API is down."""
        return [
            {
                "service_code": "standard",
                "service_name": "Standard",
                "service_type": "standard",
                "price": Decimal("15000"),
                "estimated_days": 3,
                "description": "Standard delivery, 3-5 days",
                "currency": self.currency,
            },
            {
                "service_code": "express",
                "service_name": "Express",
                "service_type": "express",
                "price": Decimal("25000"),
                "estimated_days": 1,
                "description": "Express delivery, 1-2 days",
                "currency": self.currency,
            },
        ]

    def available_methods(self, destination: dict) -> List[dict]:
        body = dict(self._account(), **{
            "producto": "0",
            "origen": self.city_code(destination["origin"]),
            "destino": self.city_code(destination),
            "valoracion": float(destination.get("declared_value") or DEFAULT_DECLARED_VALUE),
            "peso": float(destination["weight"]),
            "nivel_servicio": list(SERVICE_LEVELS.values()),
        })
        try:
            result = self._request("POST", "/recogidas/cotizador", headers=self._headers(), json=body)
        except CarrierError as e:
            logger.warning("Coordinadora quoting unavailable, using list prices", extra={"error": str(e)})
            return self.default_methods()
        return [self._quote(quote) for quote in result.get("data") or []]

    def calculate(self, data: dict) -> dict:
        service_type = data["service_type"]
        dimensions = data.get("dimensions") or DEFAULT_DIMENSIONS
        body = dict(self._account(), **{
            "producto": service_type,
            "origen": self.city_code(data["origin"]),
            "destino": self.city_code(data),
            "valoracion": float(data.get("declared_value") or DEFAULT_DECLARED_VALUE),
            "nivel_servicio": SERVICE_LEVELS.get(service_type, "2"),
            "modalidad": "2" if service_type == "express" else "1",
            "peso": float(data["weight"]),
            "largo": dimensions.get("length", 10),
            "ancho": dimensions.get("width", 10),
            "alto": dimensions.get("height", 10),
        })
        result = self._request("POST", "/recogidas/cotizador", headers=self._headers(), json=body)
        quotes = result.get("data") or []
        if not quotes:
            raise CarrierError("No shipping quote available")

        quote = self._quote(quotes[0])
        quote.update({
            "carrier": self.name,
            "service_type": service_type,
            "quote_id": quotes[0].get("id"),
        })
        return quote

    def create_label(self, data: dict) -> dict:
        sender, recipient, package = data["sender"], data["recipient"], data["package"]
        dimensions = package.get("dimensions") or DEFAULT_DIMENSIONS
        body = dict(self._account(), **{
            "producto": data["service_type"],
            "origen": self.city_code(sender),
            "destino": self.city_code(recipient),
            "tercero": {
                "nit": recipient.get("document") or "1",
                "nombre": recipient.get("name", ""),
                "direccion": recipient.get("address", ""),
                "telefono": recipient.get("phone") or "",
                "email": recipient.get("email") or "",
            },
            "remitente": {
                "nit": self.settings.get("sender_nit", ""),
                "nombre": sender.get("name", ""),
                "direccion": sender.get("address", ""),
                "telefono": sender.get("phone", ""),
                "email": sender.get("email", ""),
            },
            "detalle": {
                "peso": float(package["weight"]),
                "largo": dimensions.get("length", 10),
                "ancho": dimensions.get("width", 10),
                "alto": dimensions.get("height", 10),
                "valoracion": float(package.get("declared_value") or DEFAULT_DECLARED_VALUE),
                "descripcion": package.get("description", ""),
            },
            "referencia": data["reference"],
            "observaciones": data.get("notes") or "",
        })
        result = self._request("POST", "/guias/generar", headers=self._headers(), json=body)
        if not result.get("guia"):
            raise CarrierError("Failed to generate shipping label")

        return {
            "tracking_number": str(result["guia"]),
            "label_url": result.get("url_rotulo"),
            "cost": Decimal(str(result.get("flete", 0))),
            "currency": self.currency,
            "estimated_delivery_date": result.get("fecha_entrega"),
            "carrier_data": result,
        }

    def _event(self, raw: dict) -> dict:
        return {
            "date": raw.get("fecha", ""),
            "time": raw.get("hora", ""),
            "status": self.map_status(raw.get("estado", "")),
            "description": raw.get("descripcion", ""),
            "location": raw.get("ciudad", ""),
        }

    def track(self, tracking_number: str) -> dict:
        result = self._request("GET", f"/guias/tracking/{tracking_number}", headers=self._headers())
        return {
            "tracking_number": tracking_number,
            "carrier": self.name,
            "status": self.map_status(result.get("estado_actual", "")),
            "events": [self._event(raw) for raw in result.get("tracking") or []],
            "estimated_delivery": result.get("fecha_entrega_estimada"),
            "actual_delivery": result.get("fecha_entrega_real"),
        }

    def process_webhook(self, payload: dict) -> Optional[dict]:
        if not payload.get("guia") or not payload.get("estado"):
            return None

        now = datetime.utcnow()
        event = self._event(payload)
        event["date"] = event["date"] or now.strftime("%Y-%m-%d")
        event["time"] = event["time"] or now.strftime("%H:%M:%S")
        return {
            "tracking_number": str(payload["guia"]),
            "status": event["status"],
            "event": event,
        }

    def map_status(self, carrier_status: str) -> str:
        return STATUS_MAP.get((carrier_status or "").lower(), "in_transit")

    def is_configured(self) -> bool:
        return all(self.settings.get(key) for key in ("api_key", "username", "password"))
