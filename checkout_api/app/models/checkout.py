from __future__ import annotations

import re
from typing import Annotated, Any, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_E164 = re.compile(r"^\+[1-9]\d{1,14}$")


class _CamelIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _json_integer(v: Any) -> Any:
    # JSON numbers only: 2 and 2.0 pass, "2" and true do not
    if isinstance(v, (str, bool)):
        raise ValueError("must be an integer")
    return v


JsonInt = Annotated[int, BeforeValidator(_json_integer)]


class CartItem(_CamelIn):
    menu_item_id: str = Field(..., min_length=1)
    quantity: JsonInt = Field(..., gt=0)


class CheckoutRequest(_CamelIn):
    """Body of POST /api/checkout-session. Prices are never read from here."""

    store_id: str = Field(..., min_length=1)
    cart_items: List[CartItem] = Field(..., min_length=1)
    phone_e164: str
    consent_call: bool = Field(default=False, strict=True)
    consent_sms: bool = Field(default=False, strict=True)
    tip_cents: JsonInt = Field(default=0, ge=0)

    @field_validator("phone_e164")
    @classmethod
    def _phone_is_e164(cls, v: str) -> str:
        v = v.strip()
        if not _E164.match(v):
            raise ValueError("phoneE164 must be an E.164 number, e.g. +15551234567")
        return v


class CheckoutSessionOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    session_url: str
    order_id: str
