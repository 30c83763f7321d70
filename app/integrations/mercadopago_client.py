import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx
import mercadopago
from mercadopago.config import RequestOptions

from app.core.config import settings
from app.core.errors import GatewayError

logger = logging.getLogger(__name__)

MP_API_BASE = "https://api.mercadopago.com"


@dataclass(frozen=True)
class PixIntent:
    provider_payment_id: str
    provider_reference: str
    qr_payload: str
    qr_image: str
    copy_paste: str
    status: str


@dataclass(frozen=True)
class GatewayPaymentStatus:
    provider_payment_id: str
    status: str  # pending / approved / rejected / cancelled / ...
    status_detail: str | None = None
    external_reference: str | None = None
    approved_at: datetime | None = None


def _parse_iso_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _identification_type(tax_id: str) -> str:
    return "CNPJ" if len(tax_id) == 14 else "CPF"


class MercadoPagoGateway:
    """PIX payments against the Mercado Pago API."""

    def __init__(self, access_token: str | None = None, timeout: float = 20):
        self.access_token = access_token if access_token is not None else settings.mp_access_token
        self.timeout = timeout

    def _sdk(self) -> mercadopago.SDK:
        if not self.access_token:
            raise GatewayError("Mercado Pago access token is not set in configuration.")
        return mercadopago.SDK(self.access_token)

    def create_pix_intent(
        self,
        amount: Decimal,
        payer_tax_id: str,
        payer_email: str,
        idempotency_key: str,
        description: str = "",
    ) -> PixIntent:
        payment_data: dict[str, Any] = {
            "transaction_amount": float(amount),
            "description": description or settings.mp_statement_descriptor,
            "payment_method_id": "pix",
            "payer": {
                "email": payer_email,
                "identification": {
                    "type": _identification_type(payer_tax_id),
                    "number": payer_tax_id,
                },
            },
            "external_reference": idempotency_key,
        }
        if settings.mp_webhook_url:
            payment_data["notification_url"] = settings.mp_webhook_url

        request_options = RequestOptions()
        request_options.custom_headers = {"x-idempotency-key": idempotency_key}

        try:
            result = self._sdk().payment().create(payment_data, request_options)
        except GatewayError:
            raise
        except Exception as exc:
            logger.exception("MP payment create failed for reference=%s", idempotency_key)
            raise GatewayError(f"Mercado Pago request failed: {exc}") from exc

        resp = result.get("response") or {}
        status = result.get("status")
        if status not in (200, 201):
            raise GatewayError("Mercado Pago rejected the payment", status=status, response=resp)

        transaction_data = (resp.get("point_of_interaction") or {}).get("transaction_data") or {}
        provider_payment_id = resp.get("id")
        qr_code = transaction_data.get("qr_code")
        if not provider_payment_id or not qr_code:
            raise GatewayError("Invalid response from Mercado Pago", status=status, response=resp)

        return PixIntent(
            provider_payment_id=str(provider_payment_id),
            provider_reference=resp.get("external_reference") or idempotency_key,
            qr_payload=qr_code,
            qr_image=transaction_data.get("qr_code_base64") or "",
            copy_paste=qr_code,
            status=resp.get("status") or "pending",
        )

    async def get_payment_status(self, provider_payment_id: str) -> GatewayPaymentStatus:
        url = f"{MP_API_BASE}/v1/payments/{provider_payment_id}"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise GatewayError(f"Mercado Pago request failed: {exc}") from exc

        if r.status_code != 200:
            # keep body as text to avoid json decode surprises
            raise GatewayError("Mercado Pago status lookup failed", status=r.status_code, response=r.text)

        payment = r.json()
        return GatewayPaymentStatus(
            provider_payment_id=str(payment.get("id") or provider_payment_id),
            status=str(payment.get("status") or ""),
            status_detail=payment.get("status_detail"),
            external_reference=payment.get("external_reference"),
            approved_at=_parse_iso_datetime(payment.get("date_approved")),
        )


def get_gateway() -> MercadoPagoGateway:
    """FastAPI dependency; tests override it with a fake."""
    return MercadoPagoGateway()
