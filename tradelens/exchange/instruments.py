"""Deriverse instrument ids and the symbols they trade."""
from typing import Dict

SYMBOL_MAP: Dict[int, str] = {
    0: "SOL/USDC",
    1: "BTC/USDC",
    2: "ETH/USDC",
    3: "RAY/USDC",
    4: "BONK/USDC",
    5: "JUP/USDC",
    6: "PYTH/USDC",
}

DEFAULT_SYMBOL = "SOL/USDC"

# CoinGecko coin ids keyed by base asset
COINGECKO_IDS: Dict[str, str] = {
    "SOL": "solana",
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "RAY": "raydium",
    "BONK": "bonk",
    "JUP": "jupiter-exchange-solana",
    "PYTH": "pyth-network",
}


def symbol_for_instrument(instr_id: int) -> str:
    """Symbol for an instrument id; unknown ids map to UNKNOWN-{id}/USDC."""
    return SYMBOL_MAP.get(instr_id, f"UNKNOWN-{instr_id}/USDC")


def base_asset(symbol: str) -> str:
    return symbol.split("/")[0].upper()
