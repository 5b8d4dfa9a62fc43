import asyncio
import gc
import threading
from contextlib import asynccontextmanager, contextmanager

import aiohttp
import duckdb
import pytest
from aiohttp import web

from mevtrace.config import get_settings

RPC_URL = "http://node.example:8545"


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point the settings at a throwaway config directory."""
    path = tmp_path / ".mevtrace"
    monkeypatch.setenv("MEVTRACE_CONFIG_DIR", str(path))
    monkeypatch.delenv("ETH_RPC_URL", raising=False)
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def cached_db(config_dir):
    """An already-downloaded cache database at the configured path."""
    config_dir.mkdir(parents=True)
    path = config_dir / "mevtrace.duckdb"
    duckdb.connect(str(path)).close()
    return path


class FakeEth:
    def __init__(self, chain_id=None, error=None):
        self._chain_id = chain_id
        self._error = error
        self.chain_id_calls = 0

    @property
    def chain_id(self):
        async def _get():
            self.chain_id_calls += 1
            if self._error is not None:
                raise self._error
            return self._chain_id
        return _get()


class FakeProvider:
    disconnected = False

    async def disconnect(self):
        self.disconnected = True


class FakeW3:
    def __init__(self, chain_id=None, error=None):
        self.eth = FakeEth(chain_id=chain_id, error=error)
        self.provider = FakeProvider()


async def no_sleep(_delay):
    pass


class ScriptedNode:
    """JSON-RPC node that first answers with the given HTTP error statuses."""

    def __init__(self, statuses=(), chain_id=137, headers=None):
        self.statuses = list(statuses)
        self.chain_id = chain_id
        self.headers = headers or {}
        self.hits = 0

    async def __call__(self, request):
        self.hits += 1
        body = await request.json()
        if self.statuses:
            status = self.statuses.pop(0)
            return web.json_response({"error": "unavailable"}, status=status, headers=self.headers)
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": hex(self.chain_id)})


async def _serve(node):
    app = web.Application()
    app.router.add_post("/", node)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    return runner, f"http://{host}:{port}/"


@asynccontextmanager
async def rpc_node(node):
    """Serve ``node`` on the current event loop."""
    runner, url = await _serve(node)
    try:
        yield url
    finally:
        await runner.cleanup()


@contextmanager
def rpc_node_in_thread(node):
    """Serve ``node`` from a background loop, for code that runs its own."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    runner, url = asyncio.run_coroutine_threadsafe(_serve(node), loop).result(timeout=10)
    try:
        yield url
    finally:
        asyncio.run_coroutine_threadsafe(runner.cleanup(), loop).result(timeout=10)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=10)
        loop.close()


def open_client_sessions():
    gc.collect()
    return {id(obj) for obj in gc.get_objects() if isinstance(obj, aiohttp.ClientSession) and not obj.closed}
