# models.py
# Role: SQLAlchemy ORM models for the trade ledger.
#       One CurrencySettings row and any number of Transaction rows per user key.
#       These tables are only touched by the persistence gateway.

from sqlalchemy import Column, Integer, String, Date, Float, Text, JSON
from db import Base


class CurrencySettings(Base):
    """
    Per-user currency table: canonical currency, display currency and
    the rate map ("units of code per 1 unit of canonical").
    """

    __tablename__ = "currency_settings"

    # Owner of the ledger (one row per user)
    user_key = Column(String, primary_key=True)

    # Currency every stored amount is expressed in, e.g. "USD"
    canonical_currency = Column(String(3), nullable=False)

    # Presentation-only currency (empty = same as canonical)
    display_currency = Column(String(3), nullable=True)

    # {"USD": 1.0, "EUR": 0.92, ...}
    rates = Column(JSON, nullable=False, default=dict)


class Transaction(Base):
    """
    ORM model representing a single buy/sell ledger entry.

    Monetary columns always hold canonical-currency totals. A NULL
    sell amount means the item has not been sold yet.
    """

    __tablename__ = "transactions"

    # Owner of the ledger this row belongs to (ids are unique per user only)
    user_key = Column(String, primary_key=True)

    # Ledger id (generated by the engine, or kept from an import)
    id = Column(String(64), primary_key=True)

    # Insertion order inside the user's ledger (tie-breaker for equal dates)
    position = Column(Integer, nullable=False)

    # Day the trade happened
    date = Column(Date, nullable=False)

    # Traded item label, e.g. "AK-47 | Redline (Field-Tested)"
    item_name = Column(String, nullable=False, default="")

    # Case / Skin / Trade-up / ...
    category = Column(String, nullable=False, default="")

    # Identical units in this trade
    quantity = Column(Integer, nullable=False, default=1)

    # Totals in canonical currency
    buy_amount_canonical = Column(Float, nullable=False)
    sell_amount_canonical = Column(Float, nullable=True)

    # Optional free-text notes
    notes = Column(Text, nullable=False, default="")
