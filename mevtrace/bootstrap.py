"""Assemble the process-wide runtime: cache DB, resolver workers, RPC client, chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from web3 import AsyncWeb3

from mevtrace.chain.provider import build_transport, close_transport, validate_rpc_url
from mevtrace.chain.registry import ChainIdentity, lookup
from mevtrace.errors import ChainIdentificationError, ConfigurationError
from mevtrace.labels.ens import start_ens_lookup_worker
from mevtrace.labels.symbols import start_symbols_lookup_worker
from mevtrace.labels.worker import LookupWorker
from mevtrace.models.schema import ConnectionOptions
from mevtrace.storage.database import ConnectionPool, ensure_present, open_pool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SharedRuntime:
    db: ConnectionPool
    ens_lookup_worker: LookupWorker
    symbols_lookup_worker: LookupWorker
    w3: AsyncWeb3
    chain: ChainIdentity
    rpc_url: str

    async def aclose(self) -> None:
        """Stop the workers, close all three RPC clients, then the DB pool."""
        await _teardown([self.ens_lookup_worker, self.symbols_lookup_worker], self.w3, self.db)


async def _teardown(workers: list[LookupWorker], w3: AsyncWeb3 | None, pool: ConnectionPool) -> None:
    try:
        for worker in workers:
            await worker.aclose()
        if w3 is not None:
            await close_transport(w3)
    finally:
        pool.close()


async def init_deps(conn_opts: ConnectionOptions) -> SharedRuntime:
    """Bootstrap a ``SharedRuntime``; any failure aborts the whole sequence.

    Steps, in order: validate the URL, ensure the cache file, open the DB pool,
    spawn the resolver workers, build the RPC client, ask the node for its
    chain id and resolve it through the registry. If a later step fails, the
    workers, RPC clients and pool created by earlier steps are closed before
    the error propagates. Callers release a returned runtime with ``aclose``.
    """
    if not conn_opts.rpc_url:
        raise ConfigurationError("Missing provider URL, use --rpc-url or set ETH_RPC_URL env var")
    rpc_url = validate_rpc_url(conn_opts.rpc_url)

    await ensure_present()
    pool = open_pool()

    workers: list[LookupWorker] = []
    w3: AsyncWeb3 | None = None
    try:
        workers.append(start_ens_lookup_worker(rpc_url, pool))
        workers.append(start_symbols_lookup_worker(rpc_url, pool))
        w3 = build_transport(rpc_url)

        try:
            chain_id = await w3.eth.chain_id
        except Exception as e:
            raise ChainIdentificationError(f"Failed to query chain id from {rpc_url}: {e}") from e

        chain = lookup(chain_id)
    except BaseException:
        await _teardown(workers, w3, pool)
        raise

    logger.debug(f"Connected to {chain}")
    ens_worker, symbols_worker = workers
    return SharedRuntime(
        db=pool,
        ens_lookup_worker=ens_worker,
        symbols_lookup_worker=symbols_worker,
        w3=w3,
        chain=chain,
        rpc_url=rpc_url,
    )
