# app/services/rate_sources.py
#
# Exchange Rate Sources
# HTTP rate providers and the ordered fallback chain in front of them.
#
# A provider answers "units of <code> per 1 unit of <canonical>". The chain
# tries providers one after another; when none answers it falls back to the
# previously known rates, then to an all-ones table. It never raises.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import httpx

import config
from app.services.currency import default_rates, normalize_code
from app.services.errors import RateSourceUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateFetchResult:
    rates: Dict[str, float]
    source: str
    fallback: bool = False


# ---- Providers ----

class RateProvider:
    """Base class: subclasses build the request and read the `rates` object of the reply."""

    NAME = "base"

    def __init__(self, base_url: str, timeout: float = None, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else config.RATE_FETCH_TIMEOUT
        # Injected client (tests use httpx.MockTransport); otherwise one per call
        self._client = client

    def build_request(self, canonical: str, codes: List[str]):
        raise NotImplementedError

    async def _get_json(self, url: str, params: dict) -> dict:
        if self._client is not None:
            resp = await self._client.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()

    async def fetch(self, canonical: str, codes: Iterable[str]) -> Dict[str, float]:
        canonical = normalize_code(canonical)
        wanted = [c for c in (normalize_code(x) for x in codes) if c and c != canonical]
        url, params = self.build_request(canonical, wanted)

        try:
            data = await self._get_json(url, params)
        except (httpx.HTTPError, ValueError) as e:
            raise RateSourceUnavailableError(f"{self.NAME}: request failed: {e}") from e

        raw = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            raise RateSourceUnavailableError(f"{self.NAME}: response has no rates object")

        rates = {canonical: 1.0}
        for code in wanted:
            value = raw.get(code)
            if value is None:
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise RateSourceUnavailableError(f"{self.NAME}: rate for {code} is not a number")
            if value <= 0:
                raise RateSourceUnavailableError(f"{self.NAME}: rate for {code} is not positive")
            rates[code] = value

        if wanted and len(rates) == 1:
            raise RateSourceUnavailableError(f"{self.NAME}: none of {wanted} quoted")
        return rates


class FrankfurterProvider(RateProvider):
    NAME = "frankfurter"

    def __init__(self, base_url: str = None, **kwargs):
        super().__init__(base_url or config.FRANKFURTER_URL, **kwargs)

    def build_request(self, canonical: str, codes: List[str]):
        return f"{self.base_url}/latest", {"from": canonical, "to": ",".join(codes)}


class ExchangeRateHostProvider(RateProvider):
    NAME = "exchangerate_host"

    def __init__(self, base_url: str = None, api_key: str = None, **kwargs):
        super().__init__(base_url or config.EXCHANGERATE_HOST_URL, **kwargs)
        self.api_key = api_key if api_key is not None else config.EXCHANGERATE_HOST_API_KEY

    def build_request(self, canonical: str, codes: List[str]):
        params = {"base": canonical, "symbols": ",".join(codes)}
        if self.api_key:
            params["access_key"] = self.api_key
        return f"{self.base_url}/latest", params


# ---- Chain ----

class RateSourceChain:
    """Ordered providers, tried in sequence, with static fallbacks at the end."""

    def __init__(self, providers: List[RateProvider], timeout: float = None):
        self.providers = list(providers)
        # Hard cap per provider on top of the HTTP client timeout
        self.timeout = timeout if timeout is not None else config.RATE_FETCH_TIMEOUT + 1

    async def fetch(
        self,
        canonical: str,
        codes: Iterable[str],
        previous: Optional[Dict[str, float]] = None,
    ) -> RateFetchResult:
        canonical = normalize_code(canonical)
        codes = list(codes)

        for provider in self.providers:
            try:
                rates = await asyncio.wait_for(provider.fetch(canonical, codes), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning("[rates] %s timed out after %.1fs", provider.NAME, self.timeout)
                continue
            except RateSourceUnavailableError as e:
                logger.warning("[rates] %s unavailable: %s", provider.NAME, e)
                continue
            logger.info("[rates] %s answered for %s (%d rates)", provider.NAME, canonical, len(rates))
            return RateFetchResult(rates=rates, source=provider.NAME)

        if previous:
            logger.warning("[rates] all providers failed; keeping previous %s rates", canonical)
            rates = dict(previous)
            rates[canonical] = 1.0
            return RateFetchResult(rates=rates, source="previous", fallback=True)

        logger.warning("[rates] all providers failed and no previous rates; using all-ones defaults")
        return RateFetchResult(rates=default_rates(canonical, codes), source="default", fallback=True)


def default_chain() -> RateSourceChain:
    return RateSourceChain([FrankfurterProvider(), ExchangeRateHostProvider()])
