"""Click CLI: chains, info."""

from __future__ import annotations

import asyncio
import logging

import click

from mevtrace.errors import MevtraceError
from mevtrace.utils import SEPARATOR, init_logs, measure_end, measure_start


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """mevtrace - Multi-chain EVM transaction monitor."""
    init_logs(logging.DEBUG if verbose else logging.INFO)


@cli.command()
@click.argument("chain", required=False)
def chains(chain: str | None):
    """List the EVM chains with built-in metadata, or show one by name or id."""
    from mevtrace.chain.registry import resolve_chain, supported_chains

    try:
        selected = [resolve_chain(chain)] if chain else supported_chains()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="CHAIN") from e

    for c in selected:
        click.echo(
            f"{c.name:<10} {c.chain_id:>7}  {c.currency_symbol:<6} "
            f"{c.explorer_url:<38} cache={c.cache_directory_name}"
        )


@cli.command()
@click.option("--rpc-url", envvar="ETH_RPC_URL", help="The URL of the HTTP provider")
@click.option("--trace", default=None, help="EVM tracing mode ('revm' or 'rpc')")
def info(rpc_url: str | None, trace: str | None):
    """Connect to a node and show what chain it serves."""
    from mevtrace.bootstrap import init_deps
    from mevtrace.config import get_settings
    from mevtrace.models.schema import ConnectionOptions

    async def _info():
        opts = ConnectionOptions(rpc_url=rpc_url or get_settings().eth_rpc_url, trace=trace)
        started = measure_start("bootstrap")
        runtime = await init_deps(opts)
        measure_end(started)
        await runtime.aclose()
        return runtime.chain

    try:
        chain = asyncio.run(_info())
    except MevtraceError as e:
        raise click.ClickException(str(e)) from e

    click.echo(SEPARATOR)
    click.echo(f"Chain:     {chain.name} ({chain.chain_id})")
    click.echo(f"Currency:  {chain.currency_symbol}")
    click.echo(f"Explorer:  {chain.explorer_url}")
    oracle = "none" if chain.is_unpriced else chain.price_oracle_address
    click.echo(f"Oracle:    {oracle}")
    click.echo(f"Cache dir: {get_settings().chain_cache_dir(chain.cache_directory_name)}")
    click.echo(SEPARATOR)


if __name__ == "__main__":
    cli()
