"""Mercado Pago Checkout Pro client.

Creates payment preferences for orders and fetches payments for webhook
reconciliation. Configuration is passed in explicitly as a ``GatewayConfig``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests
from common.money import from_cents
from django.conf import settings
from django.urls import reverse
from requests import RequestException

logger = logging.getLogger("storefront.orders")

LOCAL_URL_RE = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$", re.IGNORECASE)


class GatewaySessionError(Exception):
    """The gateway call failed or the order could not be mapped to a valid payload."""

    def __init__(self, message: str, code: str = "gateway_error"):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class GatewayConfig:
    access_token: str
    base_url: str
    sandbox: bool = True
    api_url: str = "https://api.mercadopago.com"
    currency: str = "ARS"
    timeout: float = 10.0

    @classmethod
    def from_settings(cls) -> "GatewayConfig":
        return cls(
            access_token=str(getattr(settings, "MP_ACCESS_TOKEN", "") or ""),
            base_url=str(getattr(settings, "BASE_URL", "") or "").strip().rstrip("/"),
            sandbox=bool(getattr(settings, "PAYMENT_SANDBOX", True)),
            api_url=str(getattr(settings, "MP_API_URL", cls.api_url)).rstrip("/"),
            currency=str(getattr(settings, "MP_CURRENCY", cls.currency)),
            timeout=float(getattr(settings, "MP_TIMEOUT_SECONDS", cls.timeout)),
        )

    @property
    def is_local(self) -> bool:
        """True for localhost base URLs, which the gateway refuses for auto-return."""
        return bool(LOCAL_URL_RE.match(self.base_url))

    @property
    def env(self) -> str:
        return "sandbox" if self.sandbox else "production"


@dataclass(frozen=True)
class PaymentSession:
    id: str
    init_point: str = ""
    sandbox_init_point: str = ""


class MercadoPagoGateway:
    def __init__(self, config: GatewayConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.http = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "MercadoPagoGateway":
        return cls(GatewayConfig.from_settings())

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.access_token}",
            "Content-Type": "application/json",
        }

    def _absolute(self, url_name: str) -> str:
        return f"{self.config.base_url}{reverse(url_name)}"

    def _map_item(self, item) -> dict:
        title = (item.title or "").strip()
        if not title:
            raise GatewaySessionError(f"Item {item.product_id} has no title.", code="invalid_item_title")
        if item.unit_final_cents <= 0:
            raise GatewaySessionError(f"Item {item.product_id} has an invalid price.", code="invalid_item_price")
        if item.quantity <= 0:
            raise GatewaySessionError(f"Item {item.product_id} has an invalid quantity.", code="invalid_item_qty")
        return {
            "id": str(item.product_id),
            "title": title,
            "description": "Promo applied" if item.unit_final_cents < item.unit_base_cents else "",
            "quantity": int(item.quantity),
            "currency_id": self.config.currency,
            "unit_price": float(from_cents(item.unit_final_cents)),
        }

    def build_preference(self, order) -> dict:
        """Build the preference payload for an order snapshot."""

        items = [self._map_item(it) for it in order.items.all()]
        if not items:
            raise GatewaySessionError("The order has no items.", code="empty_order")
        if order.shipping_fee_cents > 0:
            items.append(
                {
                    "id": "shipping",
                    "title": "Shipping",
                    "description": str(order.shipping_method),
                    "quantity": 1,
                    "currency_id": self.config.currency,
                    "unit_price": float(from_cents(order.shipping_fee_cents)),
                }
            )
        body = {
            "items": items,
            "back_urls": {
                "success": self._absolute("checkout:checkout-success"),
                "pending": self._absolute("checkout:checkout-pending"),
                "failure": self._absolute("checkout:checkout-failure"),
            },
            "external_reference": str(order.id),
            "binary_mode": True,
        }
        if not self.config.is_local:
            body["auto_return"] = "approved"
            body["notification_url"] = self._absolute("checkout:checkout-webhook-payment")
        return body

    def create_preference(self, order) -> PaymentSession:
        if not self.config.access_token:
            raise GatewaySessionError("Payment gateway access token is not configured.", code="not_configured")
        if not self.config.base_url:
            raise GatewaySessionError("BASE_URL is not configured.", code="not_configured")
        body = self.build_preference(order)
        url = f"{self.config.api_url}/checkout/preferences"
        logger.info(
            "gateway.preference_requested",
            extra={"event": "gateway.preference_requested", "order_id": order.id, "items": len(body["items"])},
        )
        try:
            resp = self.http.post(url, json=body, headers=self._headers(), timeout=self.config.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (RequestException, ValueError) as exc:
            raise GatewaySessionError(f"Could not create payment preference: {exc}") from exc
        pref_id = data.get("id")
        if not pref_id:
            raise GatewaySessionError("Payment gateway returned no preference id.")
        return PaymentSession(
            id=str(pref_id),
            init_point=data.get("init_point") or "",
            sandbox_init_point=data.get("sandbox_init_point") or "",
        )

    def get_payment(self, payment_id) -> dict:
        url = f"{self.config.api_url}/v1/payments/{payment_id}"
        try:
            resp = self.http.get(url, headers=self._headers(), timeout=self.config.timeout)
            resp.raise_for_status()
            return resp.json()
        except (RequestException, ValueError) as exc:
            raise GatewaySessionError(f"Could not fetch payment {payment_id}: {exc}") from exc

    def redirect_url(self, session: PaymentSession) -> str:
        if self.config.sandbox:
            return session.sandbox_init_point or session.init_point
        return session.init_point
