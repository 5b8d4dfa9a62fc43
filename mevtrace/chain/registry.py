"""Chain registry mapping chain_id to chain metadata.

Adding a chain is a data change: append a ``ChainConfig`` to ``CHAINS``.
Ids missing from the table resolve to an unknown identity with safe defaults
instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from web3 import Web3
from web3.constants import ADDRESS_ZERO

logger = logging.getLogger(__name__)

DEFAULT_EXPLORER_URL = "https://etherscan.io"
DEFAULT_CURRENCY_SYMBOL = "ETH"
UNKNOWN_CHAIN_NAME = "unknown"


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    explorer_url: str
    price_oracle: str  # Chainlink native/USD feed
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
    cache_dir_name: str | None = None  # None -> decimal chain id


# Oracles: https://docs.chain.link/data-feeds/price-feeds/addresses
CHAINS: dict[int, ChainConfig] = {
    c.chain_id: c
    for c in [
        ChainConfig(1, "mainnet", "https://etherscan.io",
                    "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419", cache_dir_name="ethereum"),
        ChainConfig(8453, "base", "https://basescan.org",
                    "0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70"),
        ChainConfig(56, "bsc", "https://bscscan.com",
                    "0x0567f2323251f0aab15c8dfb1967e4e8a7d42aee", "BNB", cache_dir_name="bnb"),
        ChainConfig(42161, "arbitrum", "https://arbiscan.io",
                    "0x639Fe6ab55C921f74e7fac1ee960C0B6293ba612"),
        ChainConfig(137, "polygon", "https://polygonscan.com",
                    "0xAB594600376Ec9fD91F8e885dADF0CE036862dE0", "POL"),
        ChainConfig(1088, "metis", "https://andromeda-explorer.metis.io",
                    "0xD4a5Bb03B5D66d9bf81507379302Ac2C2DFDFa6D", "METIS"),
        ChainConfig(10, "optimism", "https://optimistic.etherscan.io",
                    "0x13e3Ee699D1909E989722E753853AE30b17e08c5"),
        ChainConfig(43114, "avalanche", "https://snowtrace.io",
                    "0x0A77230d17318075983913bC2145DB16C7366156", "AVAX"),
        ChainConfig(59144, "linea", "https://lineascan.build",
                    "0x3c6Cd9Cc7c7a4c2Cf5a82734CD249D7D593354dA"),
        ChainConfig(534352, "scroll", "https://scrollscan.com",
                    "0x6bF14CB0A831078629D993FDeBcB182b21A8774C", cache_dir_name="network_534352"),
        ChainConfig(250, "fantom", "https://explorer.fantom.network",
                    "0x11DdD3d147E5b83D01cee7070027092397d63658", "FTM", cache_dir_name="network_250"),
    ]
}


@dataclass(frozen=True)
class ChainIdentity:
    """A known chain, or ``Unknown(chain_id)`` when ``config`` is None."""

    chain_id: int
    config: ChainConfig | None = None

    @classmethod
    def unknown(cls, chain_id: int) -> ChainIdentity:
        return cls(chain_id=chain_id)

    @property
    def is_unknown(self) -> bool:
        return self.config is None

    @property
    def name(self) -> str:
        return UNKNOWN_CHAIN_NAME if self.config is None else self.config.name

    @property
    def explorer_url(self) -> str:
        # Unknown chains fall back to the mainnet explorer
        return DEFAULT_EXPLORER_URL if self.config is None else self.config.explorer_url

    @property
    def currency_symbol(self) -> str:
        return DEFAULT_CURRENCY_SYMBOL if self.config is None else self.config.currency_symbol

    @property
    def price_oracle_address(self) -> str:
        """Checksummed oracle address; the zero address means no oracle."""
        if self.config is None:
            return ADDRESS_ZERO
        return Web3.to_checksum_address(self.config.price_oracle)

    @property
    def is_unpriced(self) -> bool:
        return self.price_oracle_address == ADDRESS_ZERO

    @property
    def cache_directory_name(self) -> str:
        """Directory name for the per-chain block data cache.

        This is an on-disk layout shared with external tools, so the mix of
        aliases, bare ids and ``network_<id>`` names must stay as is.
        """
        if self.config is None:
            return f"network_{self.chain_id}"
        return self.config.cache_dir_name or str(self.chain_id)

    @property
    def revm_cache_dir_name(self) -> str:
        """Directory name for local EVM state caches."""
        return self.name

    def __str__(self) -> str:
        return f"{self.name} ({self.chain_id})"


def supported_chains() -> list[ChainIdentity]:
    return [ChainIdentity(c.chain_id, c) for c in CHAINS.values()]


def supported_chains_text() -> str:
    lines = "\n".join(f"- {c.name} ({c.chain_id})" for c in supported_chains())
    return f"Currently supported EVM chains:\n{lines}"


def lookup(chain_id: int) -> ChainIdentity:
    """Resolve a chain id. Never raises; unmatched ids become unknown identities."""
    config = CHAINS.get(chain_id)
    if config is None:
        logger.warning(f"Unknown chain id {chain_id}. {supported_chains_text()}")
        return ChainIdentity.unknown(chain_id)
    return ChainIdentity(chain_id, config)


def resolve_chain(name_or_id: str | int) -> ChainIdentity:
    """Resolve a chain name or id (CLI convenience)."""
    if isinstance(name_or_id, int):
        return lookup(name_or_id)
    name = str(name_or_id).lower()
    if name.isdigit():
        return lookup(int(name))
    for config in CHAINS.values():
        if config.name == name:
            return ChainIdentity(config.chain_id, config)
    raise ValueError(f"Unknown chain '{name}'. Supported: {[c.name for c in CHAINS.values()]}")
