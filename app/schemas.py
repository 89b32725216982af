# app/schemas.py
# Role: Pydantic request bodies for the JSON API.
#       Field aliases follow the camelCase names used by the export format.

import datetime as dt
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TransactionIn(BaseModel):
    """
    A trade as the user entered it. Amounts are totals in `currency`
    (canonical when omitted); a missing sellAmount means "not sold yet".
    """

    model_config = ConfigDict(populate_by_name=True)

    date: dt.date
    item_name: str = Field("", alias="itemName")
    category: str = ""
    quantity: int = Field(1, ge=1)
    buy_amount: float = Field(..., alias="buyAmount", ge=0, allow_inf_nan=False)
    sell_amount: Optional[float] = Field(None, alias="sellAmount", ge=0, allow_inf_nan=False)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: str = ""


class CurrencyIn(BaseModel):
    currency: str = Field(..., min_length=3, max_length=3)


class RateIn(BaseModel):
    rate: float = Field(..., gt=0)
