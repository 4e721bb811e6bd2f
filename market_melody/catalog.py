"""Selectable trading pairs, grouped by quote asset."""

from __future__ import annotations

from typing import NamedTuple


class Instrument(NamedTuple):
    symbol: str
    label: str
    group: str


_GROUPS: dict[str, list[tuple[str, str]]] = {
    "USDT Pairs": [
        ("BTCUSDT", "Bitcoin (BTC/USDT)"),
        ("ETHUSDT", "Ethereum (ETH/USDT)"),
        ("BNBUSDT", "Binance Coin (BNB/USDT)"),
        ("SOLUSDT", "Solana (SOL/USDT)"),
        ("XRPUSDT", "Ripple (XRP/USDT)"),
        ("ADAUSDT", "Cardano (ADA/USDT)"),
        ("DOGEUSDT", "Dogecoin (DOGE/USDT)"),
        ("MATICUSDT", "Polygon (MATIC/USDT)"),
        ("DOTUSDT", "Polkadot (DOT/USDT)"),
        ("AVAXUSDT", "Avalanche (AVAX/USDT)"),
        ("LINKUSDT", "Chainlink (LINK/USDT)"),
        ("ATOMUSDT", "Cosmos (ATOM/USDT)"),
        ("UNIUSDT", "Uniswap (UNI/USDT)"),
        ("SHIBUSDT", "Shiba Inu (SHIB/USDT)"),
        ("LTCUSDT", "Litecoin (LTC/USDT)"),
        ("NEARUSDT", "NEAR Protocol (NEAR/USDT)"),
        ("AAVEUSDT", "Aave (AAVE/USDT)"),
        ("ALGOUSDT", "Algorand (ALGO/USDT)"),
        ("APTUSDT", "Aptos (APT/USDT)"),
        ("FILUSDT", "Filecoin (FIL/USDT)"),
    ],
    "BTC Pairs": [
        ("ETHBTC", "Ethereum (ETH/BTC)"),
        ("BNBBTC", "Binance Coin (BNB/BTC)"),
        ("SOLBTC", "Solana (SOL/BTC)"),
        ("XRPBTC", "Ripple (XRP/BTC)"),
        ("ADABTC", "Cardano (ADA/BTC)"),
        ("DOGEBTC", "Dogecoin (DOGE/BTC)"),
        ("DOTBTC", "Polkadot (DOT/BTC)"),
        ("LINKBTC", "Chainlink (LINK/BTC)"),
    ],
    "ETH Pairs": [
        ("BNBETH", "Binance Coin (BNB/ETH)"),
        ("SOLETH", "Solana (SOL/ETH)"),
        ("LINKETH", "Chainlink (LINK/ETH)"),
        ("MATICETH", "Polygon (MATIC/ETH)"),
        ("ATOMETH", "Cosmos (ATOM/ETH)"),
        ("AVAXETH", "Avalanche (AVAX/ETH)"),
        ("AAVEETH", "Aave (AAVE/ETH)"),
    ],
    "BNB Pairs": [
        ("SOLBNB", "Solana (SOL/BNB)"),
        ("ADABNB", "Cardano (ADA/BNB)"),
        ("DOTBNB", "Polkadot (DOT/BNB)"),
        ("MATICBNB", "Polygon (MATIC/BNB)"),
        ("ATOMBNB", "Cosmos (ATOM/BNB)"),
    ],
    "BUSD Pairs": [
        ("BTCBUSD", "Bitcoin (BTC/BUSD)"),
        ("ETHBUSD", "Ethereum (ETH/BUSD)"),
        ("BNBBUSD", "Binance Coin (BNB/BUSD)"),
        ("SOLBUSD", "Solana (SOL/BUSD)"),
        ("ADABUSD", "Cardano (ADA/BUSD)"),
    ],
}

CATALOG: tuple[Instrument, ...] = tuple(
    Instrument(symbol, label, group)
    for group, entries in _GROUPS.items()
    for symbol, label in entries
)

DEFAULT_SYMBOL = "BTCUSDT"

_BY_SYMBOL = {inst.symbol: inst for inst in CATALOG}


def is_listed(symbol: str) -> bool:
    return symbol.upper() in _BY_SYMBOL


def lookup(symbol: str) -> Instrument:
    """Raises KeyError for symbols outside the catalog."""
    return _BY_SYMBOL[symbol.upper()]
