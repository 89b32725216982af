import asyncio

import httpx
import pytest

from conftest import StubProvider
from app.services.errors import RateSourceUnavailableError
from app.services.rate_sources import (
    ExchangeRateHostProvider,
    FrankfurterProvider,
    RateProvider,
    RateSourceChain,
)


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_frankfurter_request_and_parse():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={"base": "USD", "rates": {"EUR": 0.92, "AUD": 1.51}})

    async def run():
        async with _client(handler) as client:
            provider = FrankfurterProvider(base_url="https://fx.test", client=client)
            return await provider.fetch("usd", ["USD", "EUR", "AUD"])

    rates = asyncio.run(run())
    assert rates == {"USD": 1.0, "EUR": 0.92, "AUD": 1.51}
    assert seen["url"].path == "/latest"
    assert seen["url"].params["from"] == "USD"
    assert seen["url"].params["to"] == "EUR,AUD"


def test_exchangerate_host_sends_base_and_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"rates": {"USD": 0.66}})

    async def run():
        async with _client(handler) as client:
            provider = ExchangeRateHostProvider(base_url="https://erh.test", api_key="k", client=client)
            return await provider.fetch("AUD", ["USD"])

    assert asyncio.run(run()) == {"AUD": 1.0, "USD": 0.66}
    assert seen["params"] == {"base": "AUD", "symbols": "USD", "access_key": "k"}


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, json={"no": "rates"}),
        httpx.Response(200, json={"rates": {"EUR": -1}}),
        httpx.Response(200, json={"rates": {}}),
        httpx.Response(200, content=b"not json"),
    ],
)
def test_provider_failures_raise_unavailable(response):
    async def run():
        async with _client(lambda request: response) as client:
            await FrankfurterProvider(base_url="https://fx.test", client=client).fetch("USD", ["EUR"])

    with pytest.raises(RateSourceUnavailableError):
        asyncio.run(run())


def test_chain_uses_first_working_provider():
    down = StubProvider("down", None)
    up = StubProvider("up", {"USD": 1.0, "EUR": 0.9})
    never = StubProvider("never", {"USD": 1.0, "EUR": 5.0})

    result = asyncio.run(RateSourceChain([down, up, never]).fetch("USD", ["EUR"]))
    assert result.source == "up"
    assert not result.fallback
    assert result.rates["EUR"] == 0.9
    assert (down.calls, up.calls, never.calls) == (1, 1, 0)


def test_chain_falls_back_to_previous_rates():
    chain = RateSourceChain([StubProvider("a", None), StubProvider("b", None)])
    result = asyncio.run(chain.fetch("USD", ["EUR"], previous={"USD": 1.0, "EUR": 0.77}))
    assert result.fallback
    assert result.source == "previous"
    assert result.rates == {"USD": 1.0, "EUR": 0.77}


def test_chain_falls_back_to_default_on_first_run():
    chain = RateSourceChain([StubProvider("a", None)])
    result = asyncio.run(chain.fetch("EUR", ["EUR", "USD", "AUD"]))
    assert result.source == "default"
    assert result.rates == {"EUR": 1.0, "USD": 1.0, "AUD": 1.0}


def test_chain_times_out_slow_provider():
    class SlowProvider(RateProvider):
        NAME = "slow"

        async def fetch(self, canonical, codes):
            await asyncio.sleep(5)
            return {"USD": 1.0}

    chain = RateSourceChain(
        [SlowProvider("http://slow.invalid"), StubProvider("fast", {"USD": 1.0, "EUR": 0.5})],
        timeout=0.05,
    )
    result = asyncio.run(chain.fetch("USD", ["EUR"]))
    assert result.source == "fast"
