from __future__ import annotations

from typing import Dict, List, Tuple


NETWORK_NAMES: Dict[str, str] = {
    "1": "Ethereum",
    "10": "Optimism",
    "56": "BNB Chain",
    "137": "Polygon",
    "8453": "Base",
    "42161": "Arbitrum",
    "43114": "Avalanche",
}

NETWORK_IDS: Dict[str, str] = {
    "ethereum": "1",
    "optimism": "10",
    "bnb chain": "56",
    "bsc": "56",
    "polygon": "137",
    "base": "8453",
    "arbitrum": "42161",
    "avalanche": "43114",
}

NETWORK_ICONS: Dict[str, str] = {
    "ethereum": "🔹",
    "polygon": "💜",
    "arbitrum": "🔵",
    "optimism": "❤️",
    "base": "🔷",
    "bnb chain": "🟡",
    "avalanche": "🔺",
}

# Networks offered when the user generates a new wallet.
SUPPORTED_NETWORKS: List[Tuple[str, str]] = [
    ("1", "Ethereum"),
    ("137", "Polygon"),
    ("42161", "Arbitrum"),
    ("10", "Optimism"),
    ("8453", "Base"),
]


def network_name(network: str) -> str:
    """Human readable name for a chain id or network slug."""
    raw = str(network or "").strip()
    if raw in NETWORK_NAMES:
        return NETWORK_NAMES[raw]
    key = raw.lower()
    if key in NETWORK_IDS:
        return NETWORK_NAMES[NETWORK_IDS[key]]
    if not raw:
        return "—"
    return raw[:1].upper() + raw[1:]


def network_key(network: str) -> str:
    """Lowercase canonical name used for validator dispatch."""
    return network_name(network).lower()


def network_id(network: str) -> str:
    key = str(network or "").strip().lower()
    return NETWORK_IDS.get(key, str(network))


def format_network(network: str) -> str:
    name = network_name(network)
    icon = NETWORK_ICONS.get(name.lower(), "🌐")
    return f"{icon} {name}"
