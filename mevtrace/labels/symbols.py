"""Token symbol lookups via on-chain ERC-20 calls, persisted to the cache database."""

from __future__ import annotations

import asyncio
import logging

from web3 import AsyncWeb3

from mevtrace.chain.provider import build_transport
from mevtrace.config import get_settings
from mevtrace.labels.worker import LookupWorker
from mevtrace.storage.database import ConnectionPool, has_symbol_entry, save_symbol
from mevtrace.tokens.constants import ERC20_ABI

logger = logging.getLogger(__name__)


async def fetch_symbol_onchain(w3: AsyncWeb3, token_address: str) -> str | None:
    """ERC-20 ``symbol()``, or None for contracts that do not implement it."""
    checksum = w3.to_checksum_address(token_address)
    if not await w3.eth.get_code(checksum):
        return None
    contract = w3.eth.contract(address=checksum, abi=ERC20_ABI)
    symbol = await contract.functions.symbol().call()
    return symbol or None


class SymbolResolver:
    def __init__(self, w3: AsyncWeb3, pool: ConnectionPool):
        self.w3 = w3
        self.pool = pool
        self._chain_id: int | None = None

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.w3.eth.chain_id
        return self._chain_id

    async def __call__(self, address: str) -> None:
        chain_id = await self.chain_id()
        async with self.pool.acquire() as conn:
            if await asyncio.to_thread(has_symbol_entry, conn, chain_id, address):
                return
        symbol = await fetch_symbol_onchain(self.w3, address)
        logger.debug(f"Symbol {address} -> {symbol}")
        async with self.pool.acquire() as conn:
            await asyncio.to_thread(save_symbol, conn, chain_id, address, symbol)


def start_symbols_lookup_worker(rpc_url: str, pool: ConnectionPool) -> LookupWorker:
    """Spawn the symbol worker on the running loop, with its own RPC client."""
    w3 = build_transport(rpc_url)
    resolver = SymbolResolver(w3, pool)
    return LookupWorker("symbols", resolver, maxsize=get_settings().resolver_queue_size, w3=w3).start()
