"""DuckDB cache database: bootstrap download, connection pool, name/symbol tables."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import duckdb
import httpx
from tqdm import tqdm

from mevtrace.config import get_settings
from mevtrace.errors import BootstrapError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1 << 16


def db_file_exists(path: Path | None = None) -> bool:
    if path is None:
        path = get_settings().db_path
    return path.is_file()


async def download_db_file(
    path: Path | None = None,
    url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    progress: bool = True,
) -> Path:
    """Fetch the cache database blob. The target only appears once complete."""
    settings = get_settings()
    path = path or settings.db_path
    url = url or settings.db_download_url
    partial = path.with_name(path.name + ".part")

    try:
        async with httpx.AsyncClient(
            timeout=settings.db_download_timeout,
            follow_redirects=True,
            transport=transport,
        ) as client:
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                total = int(resp.headers.get("content-length", 0)) or None
                with open(partial, "wb") as fh, tqdm(
                    total=total, unit="B", unit_scale=True, desc="Downloading database", disable=not progress
                ) as bar:
                    async for chunk in resp.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                        await asyncio.to_thread(fh.write, chunk)
                        bar.update(len(chunk))
        await asyncio.to_thread(partial.replace, path)
    except (httpx.HTTPError, OSError) as e:
        partial.unlink(missing_ok=True)
        raise BootstrapError(f"Failed to download database from {url}: {e}") from e

    logger.info(f"Database downloaded to {path}")
    return path


async def ensure_present(
    path: Path | None = None,
    url: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Path:
    """Make sure the cache database file exists locally, downloading it if absent."""
    path = path or get_settings().db_path
    if db_file_exists(path):
        return path

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BootstrapError(f"Cannot create config directory {path.parent}: {e}") from e

    logger.info("Database file missing")
    return await download_db_file(path, url=url, transport=transport)


class ConnectionPool:
    """Hands out independent cursors over one DuckDB database.

    DuckDB allows one read-write handle per file and process; concurrent users
    get their own ``cursor()`` of it. ``max_connections`` bounds how many are
    checked out at once.
    """

    def __init__(self, path: Path, max_connections: int = 8):
        self.path = path
        self._conn = duckdb.connect(str(path))
        _create_tables(self._conn)
        self._slots = asyncio.Semaphore(max_connections)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[duckdb.DuckDBPyConnection]:
        async with self._slots:
            cursor = self._conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()

    def close(self) -> None:
        self._conn.close()


def open_pool(path: Path | None = None, max_connections: int | None = None) -> ConnectionPool:
    settings = get_settings()
    path = path or settings.db_path
    try:
        return ConnectionPool(path, max_connections=max_connections or settings.db_max_connections)
    except duckdb.Error as e:
        raise BootstrapError(f"Cannot open database {path}: {e}") from e


def _create_tables(conn: duckdb.DuckDBPyConnection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS ens_names (
            address VARCHAR PRIMARY KEY,
            name VARCHAR,
            updated_at BIGINT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS token_symbols (
            chain_id INTEGER NOT NULL,
            address VARCHAR NOT NULL,
            symbol VARCHAR,
            updated_at BIGINT NOT NULL,
            PRIMARY KEY (chain_id, address)
        )
    """)


# A NULL name/symbol records a lookup that found nothing, so it is not retried.

def save_ens_name(conn: duckdb.DuckDBPyConnection, address: str, name: str | None) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO ens_names VALUES (?, ?, ?)",
        [address.lower(), name, int(time.time())],
    )


def has_ens_entry(conn: duckdb.DuckDBPyConnection, address: str) -> bool:
    row = conn.execute("SELECT 1 FROM ens_names WHERE address = ?", [address.lower()]).fetchone()
    return row is not None


def get_ens_name(conn: duckdb.DuckDBPyConnection, address: str) -> str | None:
    row = conn.execute("SELECT name FROM ens_names WHERE address = ?", [address.lower()]).fetchone()
    return row[0] if row else None


def save_symbol(conn: duckdb.DuckDBPyConnection, chain_id: int, address: str, symbol: str | None) -> None:
    conn.execute(
        "INSERT OR REPLACE INTO token_symbols VALUES (?, ?, ?, ?)",
        [chain_id, address.lower(), symbol, int(time.time())],
    )


def has_symbol_entry(conn: duckdb.DuckDBPyConnection, chain_id: int, address: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM token_symbols WHERE chain_id = ? AND address = ?",
        [chain_id, address.lower()],
    ).fetchone()
    return row is not None


def get_symbol(conn: duckdb.DuckDBPyConnection, chain_id: int, address: str) -> str | None:
    row = conn.execute(
        "SELECT symbol FROM token_symbols WHERE chain_id = ? AND address = ?",
        [chain_id, address.lower()],
    ).fetchone()
    return row[0] if row else None
