"""Logging setup, timing and unit conversion helpers."""

from __future__ import annotations

import logging
import time

from web3 import Web3

from mevtrace.tokens.constants import U64_MAX, U128_MAX

logger = logging.getLogger(__name__)

SEPARATORER = "=" * 95
SEPARATOR = "-" * 95

ETH_TRANSFER = "<ETH transfer>"
UNKNOWN = "<Unknown>"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def init_logs(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def measure_start(label: str) -> tuple[str, float]:
    return label, time.perf_counter()


def measure_end(start: tuple[str, float]) -> float:
    """Log and return seconds elapsed since ``measure_start``."""
    label, started = start
    elapsed = time.perf_counter() - started
    logger.info(f"Elapsed: {elapsed:.2f}s for '{label}'")
    return elapsed


def wei_to_eth(wei: int) -> float:
    # from_wei divides in Decimal, so round amounts convert exactly
    return float(Web3.from_wei(wei, "ether"))


def wei_to_gwei(wei: int) -> float:
    return float(Web3.from_wei(wei, "gwei"))


def _narrow(value: int, max_value: int, bits: int) -> int:
    if not 0 <= value <= max_value:
        raise OverflowError(f"{value} does not fit in u{bits}")
    return int(value)


def to_u64(value: int) -> int:
    return _narrow(value, U64_MAX, 64)


def to_u128(value: int) -> int:
    return _narrow(value, U128_MAX, 128)
