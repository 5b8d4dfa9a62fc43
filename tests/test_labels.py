import asyncio
import logging

import pytest

from conftest import FakeW3
from mevtrace.labels import symbols
from mevtrace.labels.ens import EnsResolver
from mevtrace.labels.symbols import SymbolResolver, fetch_symbol_onchain
from mevtrace.labels.worker import LookupWorker
from mevtrace.storage.database import ConnectionPool, get_ens_name, get_symbol, has_ens_entry

VITALIK = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


@pytest.fixture
def pool(tmp_path):
    pool = ConnectionPool(tmp_path / "cache.duckdb")
    yield pool
    pool.close()


class FakeNS:
    def __init__(self, names=None, error=None, chain_id=1):
        self.w3 = FakeW3(chain_id=chain_id)
        self.names = names or {}
        self.error = error
        self.calls = []

    async def name(self, address):
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return self.names.get(address.lower())


@pytest.mark.asyncio
async def test_worker_resolves_submitted_addresses():
    seen = []

    async def resolve(address):
        seen.append(address)

    worker = LookupWorker("test", resolve).start()
    assert worker.send("0x1")
    assert worker.send("0x2")
    await worker.join()
    assert sorted(seen) == ["0x1", "0x2"]
    assert worker.running
    worker.cancel()


@pytest.mark.asyncio
async def test_worker_survives_failed_resolution(caplog):
    seen = []

    async def resolve(address):
        if address == "bad":
            raise RuntimeError("upstream down")
        seen.append(address)

    worker = LookupWorker("test", resolve).start()
    with caplog.at_level(logging.WARNING, logger="mevtrace.labels.worker"):
        worker.send("bad")
        worker.send("good")
        await worker.join()
    assert seen == ["good"]
    assert worker.running
    assert "test lookup failed for bad" in caplog.text
    worker.cancel()


@pytest.mark.asyncio
async def test_send_does_not_block_and_drops_when_full(caplog):
    async def resolve(address):
        pass

    worker = LookupWorker("test", resolve, maxsize=2)
    assert worker.send("0x1")
    assert worker.send("0x2")
    with caplog.at_level(logging.WARNING, logger="mevtrace.labels.worker"):
        assert not worker.send("0x3")
    assert worker.dropped == 1
    assert "queue full" in caplog.text


@pytest.mark.asyncio
async def test_cancelled_worker_stops_running():
    async def resolve(address):
        pass

    worker = LookupWorker("test", resolve).start()
    worker.cancel()
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert not worker.running


@pytest.mark.asyncio
async def test_ens_resolver_persists_and_skips_cached(pool):
    ns = FakeNS({VITALIK: "vitalik.eth"})
    resolver = EnsResolver(ns, pool)

    await resolver(VITALIK)
    await resolver(VITALIK)

    assert len(ns.calls) == 1
    assert ns.calls[0] == "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
    async with pool.acquire() as conn:
        assert get_ens_name(conn, VITALIK) == "vitalik.eth"


@pytest.mark.asyncio
async def test_ens_resolver_ignores_non_mainnet_chains(pool, caplog):
    ns = FakeNS({VITALIK: "vitalik.eth"}, chain_id=56)
    resolver = EnsResolver(ns, pool)

    with caplog.at_level(logging.INFO, logger="mevtrace.labels.ens"):
        await resolver(VITALIK)
        await resolver(VITALIK)

    assert ns.calls == []
    assert ns.w3.eth.chain_id_calls == 1
    assert "ENS lookups disabled on chain 56" in caplog.text
    async with pool.acquire() as conn:
        assert not has_ens_entry(conn, VITALIK)


@pytest.mark.asyncio
async def test_ens_failure_through_worker_is_dropped(pool):
    worker = LookupWorker("ens", EnsResolver(FakeNS(error=TimeoutError()), pool)).start()
    worker.send(VITALIK)
    await worker.join()
    async with pool.acquire() as conn:
        assert not has_ens_entry(conn, VITALIK)
    assert worker.running
    worker.cancel()


@pytest.mark.asyncio
async def test_symbol_resolver_uses_chain_and_cache(pool, monkeypatch):
    calls = []

    async def fake_fetch(w3, address):
        calls.append(address)
        return "USDC"

    monkeypatch.setattr(symbols, "fetch_symbol_onchain", fake_fetch)
    w3 = FakeW3(chain_id=1)
    resolver = SymbolResolver(w3, pool)

    await resolver(USDC)
    await resolver(USDC)

    assert calls == [USDC]
    assert w3.eth.chain_id_calls == 1
    async with pool.acquire() as conn:
        assert get_symbol(conn, 1, USDC) == "USDC"


class CodeEth:
    def __init__(self, code):
        self.code = code
        self.contract_calls = 0

    async def get_code(self, address):
        return self.code

    def contract(self, address, abi):
        self.contract_calls += 1
        raise AssertionError("no contract call expected for an EOA")


class CodeW3:
    def __init__(self, code):
        self.eth = CodeEth(code)

    @staticmethod
    def to_checksum_address(address):
        return address


@pytest.mark.asyncio
async def test_fetch_symbol_skips_accounts_without_code():
    w3 = CodeW3(b"")
    assert await fetch_symbol_onchain(w3, VITALIK) is None
    assert w3.eth.contract_calls == 0


@pytest.mark.asyncio
async def test_worker_aclose_stops_task_and_disconnects_client():
    async def resolve(address):
        pass

    w3 = FakeW3(chain_id=1)
    worker = LookupWorker("test", resolve, w3=w3).start()
    await worker.aclose()

    assert not worker.running
    assert w3.provider.disconnected
