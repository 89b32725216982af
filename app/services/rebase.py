# app/services/rebase.py
#
# Canonical Currency Rebase
# Moves a whole LedgerState onto a new canonical currency: every stored
# amount and every rate is rewritten so real-world values are preserved.
#
# The new state is assembled on the side and returned in one piece; callers
# swap it in with a single assignment, so a half-rebased ledger never exists.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.services.currency import CurrencyTable, is_currency_code, normalize_code
from app.services.errors import InvalidRateError, LedgerUnavailableError
from app.services.ledger import LedgerState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RebaseResult:
    state: LedgerState
    factor: float
    degraded: bool = False

    @property
    def changed(self) -> bool:
        return self.factor != 1.0 or self.degraded


def rebase_factor(table: CurrencyTable, new_base: str) -> Optional[float]:
    """
    Old-canonical units worth one unit of `new_base`, i.e. 1 / rates[new_base].
    None when the rate is unknown or zero.
    """
    rate = table.rates.get(new_base)
    if not rate:
        return None
    return 1.0 / rate


def rebase(state: Optional[LedgerState], new_base: str) -> RebaseResult:
    """
    Rebase `state` onto `new_base`.

    Never raises for missing rates: without a usable rate the factor is 1,
    amounts keep their numbers, and the result is flagged `degraded`.
    """
    if state is None or state.ledger is None or state.currency_table is None:
        raise LedgerUnavailableError("Cannot rebase: no ledger state loaded")

    new_base = normalize_code(new_base)
    if not is_currency_code(new_base):
        raise InvalidRateError(f"Invalid currency code: {new_base!r}")

    table = state.currency_table
    old_base = table.canonical_currency

    if new_base == old_base:
        return RebaseResult(state=state, factor=1.0)

    factor = rebase_factor(table, new_base)
    degraded = factor is None
    if degraded:
        factor = 1.0
        logger.warning(
            "[rebase] degraded: no usable %s rate in %s table; amounts kept as-is (factor 1)",
            new_base,
            old_base,
        )

    ledger = state.ledger.map(lambda t: t.scaled(factor))

    new_rates = {new_base: 1.0}
    for code, rate in table.rates.items():
        if code == new_base:
            continue
        new_rates[code] = rate * factor

    new_table = CurrencyTable(
        canonical_currency=new_base,
        display_currency=table.display_currency or new_base,
        rates=new_rates,
    )

    logger.info(
        "[rebase] %s -> %s, factor=%.8f, %d transactions rewritten",
        old_base,
        new_base,
        factor,
        len(ledger),
    )
    return RebaseResult(
        state=LedgerState(ledger=ledger, currency_table=new_table),
        factor=factor,
        degraded=degraded,
    )
