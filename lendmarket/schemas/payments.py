from typing import Any

from lendmarket.schemas.common import CamelModel


class PaymentIntentRequest(CamelModel):
    # Validated by the payment service so bad input maps to a 400.
    amount: Any = None


class PaymentIntentResponse(CamelModel):
    client_secret: str


class CheckoutResponse(CamelModel):
    url: str
