"""Configuration for pDEX order assembly.

Config is a plain ``TypedDict`` with optional keys; ``resolve_config``
applies defaults. ``load_config_from_env`` reads ``PDEX_*`` variables,
loading a ``.env`` file first if one exists.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, TypedDict

from dotenv import load_dotenv
from eth_utils import is_address, to_checksum_address

from .eip712 import ORDER_DOMAIN_NAME, ZERO_ADDRESS

# Anvil / Hardhat local chain
ANVIL_CHAIN_ID = 31337


class NonceScheme(str, Enum):
    """How the Order nonce relates to the Permit nonce."""

    SHARED = "shared"
    """Order reuses the permit's token nonce."""

    INDEPENDENT = "independent"
    """Order nonce is read separately from the exchange contract."""


# The nonce scheme is part of the wire contract, so each one has its own
# exchange domain version.
NONCE_SCHEME_VERSIONS: Dict[NonceScheme, str] = {
    NonceScheme.SHARED: "1",
    NonceScheme.INDEPENDENT: "2",
}


class OrderProtocolConfig(TypedDict, total=False):
    """Order protocol configuration."""

    chain_id: int
    """Chain ID. Default: 31337 (Anvil)"""

    exchange_address: str
    """pDEX exchange contract address. Required"""

    exchange_name: str
    """Exchange EIP-712 domain name. Default: pDEX"""

    exchange_version: str
    """Exchange EIP-712 domain version. Must match nonce_scheme. Default: derived from it"""

    nonce_scheme: str
    """Either shared or independent. Default: shared"""

    permit_deadline_seconds: int
    """Permit lifetime in seconds. Default: 3600 (1 hour)"""

    order_expiry_seconds: int
    """Order lifetime in seconds. Default: 3600 (1 hour)"""


@dataclass
class ResolvedOrderProtocolConfig:
    """Resolved order protocol configuration with all defaults applied."""

    chain_id: int
    exchange_address: str
    exchange_name: str
    exchange_version: str
    nonce_scheme: NonceScheme
    permit_deadline_seconds: int
    order_expiry_seconds: int


def resolve_config(config: Optional[OrderProtocolConfig] = None) -> ResolvedOrderProtocolConfig:
    """Apply defaults to ``config``.

    Raises:
        ValueError: If the exchange address is missing or invalid, or the
            nonce scheme is unknown or does not match exchange_version
    """
    config = config or {}

    exchange_address = config.get("exchange_address", ZERO_ADDRESS)
    if not is_address(exchange_address) or exchange_address == ZERO_ADDRESS:
        raise ValueError(f"Invalid exchange_address: {exchange_address}")

    try:
        nonce_scheme = NonceScheme(config.get("nonce_scheme", NonceScheme.SHARED))
    except ValueError:
        raise ValueError(f"Unknown nonce_scheme: {config.get('nonce_scheme')}") from None

    expected_version = NONCE_SCHEME_VERSIONS[nonce_scheme]
    exchange_version = config.get("exchange_version", expected_version)
    if exchange_version != expected_version:
        raise ValueError(
            f"exchange_version {exchange_version!r} does not match nonce_scheme "
            f"{nonce_scheme.value!r} (expected {expected_version!r})"
        )

    return ResolvedOrderProtocolConfig(
        chain_id=int(config.get("chain_id", ANVIL_CHAIN_ID)),
        exchange_address=to_checksum_address(exchange_address),
        exchange_name=config.get("exchange_name", ORDER_DOMAIN_NAME),
        exchange_version=exchange_version,
        nonce_scheme=nonce_scheme,
        permit_deadline_seconds=int(config.get("permit_deadline_seconds", 3600)),
        order_expiry_seconds=int(config.get("order_expiry_seconds", 3600)),
    )


def load_config_from_env(prefix: str = "PDEX_") -> OrderProtocolConfig:
    """Build a config from environment variables.

    Reads ``<prefix>CHAIN_ID``, ``<prefix>EXCHANGE_ADDRESS``,
    ``<prefix>EXCHANGE_NAME``, ``<prefix>EXCHANGE_VERSION``,
    ``<prefix>NONCE_SCHEME``, ``<prefix>PERMIT_DEADLINE_SECONDS`` and
    ``<prefix>ORDER_EXPIRY_SECONDS``. Unset variables are left out so
    that ``resolve_config`` applies its defaults.
    """
    load_dotenv()

    config: OrderProtocolConfig = {}
    for key in ("chain_id", "permit_deadline_seconds", "order_expiry_seconds"):
        value = os.environ.get(prefix + key.upper())
        if value:
            config[key] = int(value)  # type: ignore[literal-required]
    for key in ("exchange_address", "exchange_name", "exchange_version", "nonce_scheme"):
        value = os.environ.get(prefix + key.upper())
        if value:
            config[key] = value  # type: ignore[literal-required]
    return config
