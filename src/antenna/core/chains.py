"""Supported chains and their deployment metadata."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChainConfig:
    """Immutable deployment description for a single chain."""

    chain_id: int
    name: str
    short_name: str
    rpc: str
    explorer: str
    registry: str
    key_manager: str
    default_lookback: int


CHAINS: dict[str, ChainConfig] = {
    "baseSepolia": ChainConfig(
        chain_id=84532,
        name="Base Sepolia",
        short_name="Sepolia",
        rpc="https://sepolia.base.org",
        explorer="https://sepolia.basescan.org",
        registry="0xf39b193aedC1Ec9FD6C5ccc24fBAe58ba9f52413",
        key_manager="0x5562B553a876CBdc8AA4B3fb0687f22760F4759e",
        default_lookback=200_000,
    ),
    "base": ChainConfig(
        chain_id=8453,
        name="Base",
        short_name="Base",
        rpc="https://mainnet.base.org",
        explorer="https://basescan.org",
        registry="0x5fF6BF04F1B5A78ae884D977a3C80A0D8E2072bF",
        key_manager="0xdc302ff43a34F6aEa19426D60C9D150e0661E4f4",
        default_lookback=200_000,
    ),
    "avalanche": ChainConfig(
        chain_id=43114,
        name="Avalanche C-Chain",
        short_name="Avalanche",
        rpc="https://api.avax.network/ext/bc/C/rpc",
        explorer="https://snowtrace.io",
        registry="0x3Ca2FF0bD1b3633513299EB5d3e2d63e058b0713",
        key_manager="0x5a5ea9D408FBA984fFf6e243Dcc71ff6E00C73E4",
        # Faster blocks, so a longer window covers the same wall-clock time
        default_lookback=500_000,
    ),
}

CHAIN_IDS: dict[int, str] = {config.chain_id: name for name, config in CHAINS.items()}


def get_chain(name_or_id: str | int) -> ChainConfig:
    """Look up a chain by short name or numeric chain id.

    Raises:
        ValueError: If the chain is not supported.
    """
    if isinstance(name_or_id, int):
        name = CHAIN_IDS.get(name_or_id)
        if name is None:
            raise ValueError(f"Unsupported chain ID: {name_or_id}")
        return CHAINS[name]

    chain = CHAINS.get(name_or_id)
    if chain is None:
        raise ValueError(f"Unsupported chain: {name_or_id}")
    return chain
