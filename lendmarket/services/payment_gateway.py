"""Payment processor adapter.

``PaymentGateway`` is the narrow contract the rest of the service depends on;
``StripePaymentGateway`` implements it against the Stripe REST API.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from lendmarket.core.errors import UpstreamFailure
from lendmarket.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    id: str
    client_secret: str


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    id: str
    url: str


class PaymentGateway(ABC):
    """Initiates money movement outside this service."""

    @abstractmethod
    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: Mapping[str, str] | None = None,
    ) -> PaymentIntent:
        """
        Create a card payment intent the client confirms with its secret.

        Raises:
            UpstreamFailure: If the processor rejects the request or does not
                answer in time
        """
        ...

    @abstractmethod
    async def create_checkout_session(
        self,
        *,
        product_name: str,
        amount_cents: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Mapping[str, str] | None = None,
    ) -> CheckoutSession:
        """
        Create a hosted checkout page for a single line item.

        Returns:
            The session, whose ``url`` the client is redirected to
        """
        ...


def _flatten_form(data: Mapping[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Encode nested mappings/lists the way Stripe expects (``a[b][0][c]=v``)."""
    pairs: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            pairs.extend(_flatten_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, Mapping):
                    pairs.extend(_flatten_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripePaymentGateway(PaymentGateway):
    """
    Stripe client over plain HTTPS.

    Calls are made once; a failed call is reported, never retried, so a
    payment is not created twice.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self._base_url = (base_url or settings.stripe_api_base).rstrip("/")
        self._timeout = timeout or settings.stripe_timeout_seconds
        self._transport = transport

    async def _post(self, path: str, form: Mapping[str, Any]) -> dict[str, Any]:
        if not self._secret_key:
            raise UpstreamFailure("Stripe secret key is not configured")

        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    url,
                    data=dict(_flatten_form(form)),
                    headers={"Authorization": f"Bearer {self._secret_key}"},
                )
        except httpx.TimeoutException as exc:
            logger.warning("Stripe request timed out path=%s", path)
            raise UpstreamFailure("Stripe request timed out", details={"path": path}) from exc
        except httpx.HTTPError as exc:
            raise UpstreamFailure(
                f"Stripe request failed: {exc}", details={"path": path}
            ) from exc

        if response.status_code >= 400:
            raise UpstreamFailure(
                f"Stripe API error: {response.text}",
                details={"path": path, "status_code": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFailure(
                f"Stripe returned a non-JSON body: {response.text[:200]}",
                details={"path": path, "status_code": response.status_code},
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamFailure("Stripe returned an unexpected body", details={"path": path})
        return payload

    @staticmethod
    def _require(data: Mapping[str, Any], path: str, *fields: str) -> list[str]:
        values = [data.get(field) for field in fields]
        missing = [field for field, value in zip(fields, values) if not value]
        if missing:
            raise UpstreamFailure(
                f"Stripe response is missing {', '.join(missing)}",
                details={"path": path, "missing_fields": missing},
            )
        return [str(value) for value in values]

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: Mapping[str, str] | None = None,
    ) -> PaymentIntent:
        data = await self._post(
            "/v1/payment_intents",
            {
                "amount": amount_cents,
                "currency": currency,
                "payment_method_types": ["card"],
                "metadata": dict(metadata or {}),
            },
        )
        intent_id, client_secret = self._require(data, "/v1/payment_intents", "id", "client_secret")
        logger.info("Stripe payment intent created id=%s amount_cents=%s", intent_id, amount_cents)
        return PaymentIntent(id=intent_id, client_secret=client_secret)

    async def create_checkout_session(
        self,
        *,
        product_name: str,
        amount_cents: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Mapping[str, str] | None = None,
    ) -> CheckoutSession:
        data = await self._post(
            "/v1/checkout/sessions",
            {
                "mode": "payment",
                "payment_method_types": ["card"],
                "line_items": [
                    {
                        "price_data": {
                            "currency": currency,
                            "product_data": {"name": product_name},
                            "unit_amount": amount_cents,
                        },
                        "quantity": 1,
                    }
                ],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": dict(metadata or {}),
            },
        )
        session_id, url = self._require(data, "/v1/checkout/sessions", "id", "url")
        logger.info("Stripe checkout session created id=%s amount_cents=%s", session_id, amount_cents)
        return CheckoutSession(id=session_id, url=url)
