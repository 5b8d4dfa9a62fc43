"""ENS reverse lookups persisted to the cache database."""

from __future__ import annotations

import asyncio
import logging

from ens import AsyncENS
from web3 import Web3

from mevtrace.chain.provider import build_transport
from mevtrace.config import get_settings
from mevtrace.labels.worker import LookupWorker
from mevtrace.storage.database import ConnectionPool, has_ens_entry, save_ens_name

logger = logging.getLogger(__name__)

# The ENS registry AsyncENS talks to by default lives on mainnet
ENS_CHAIN_ID = 1


class EnsResolver:
    """Reverse-resolve an address and cache the result, NULL included.

    On nodes serving any other chain than mainnet there is no registry to ask,
    so submissions are ignored without touching the network or the cache.
    """

    def __init__(self, ns: AsyncENS, pool: ConnectionPool):
        self.ns = ns
        self.pool = pool
        self._enabled: bool | None = None

    async def enabled(self) -> bool:
        if self._enabled is None:
            chain_id = await self.ns.w3.eth.chain_id
            self._enabled = chain_id == ENS_CHAIN_ID
            if not self._enabled:
                logger.info(f"ENS lookups disabled on chain {chain_id}")
        return self._enabled

    async def __call__(self, address: str) -> None:
        if not await self.enabled():
            return
        async with self.pool.acquire() as conn:
            if await asyncio.to_thread(has_ens_entry, conn, address):
                return
        name = await self.ns.name(Web3.to_checksum_address(address))
        logger.debug(f"ENS {address} -> {name}")
        async with self.pool.acquire() as conn:
            await asyncio.to_thread(save_ens_name, conn, address, name)


def start_ens_lookup_worker(rpc_url: str, pool: ConnectionPool) -> LookupWorker:
    """Spawn the ENS worker on the running loop, with its own RPC client."""
    w3 = build_transport(rpc_url)
    resolver = EnsResolver(AsyncENS.from_web3(w3), pool)
    return LookupWorker("ens", resolver, maxsize=get_settings().resolver_queue_size, w3=w3).start()
