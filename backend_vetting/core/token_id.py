"""
Token identifier parsing and normalization.

A token is named either by a bare address (the configured default chain is
assumed) or by ``<chain>:<address>``. The normalized ``key`` is what the
store and logs use, so the same token always maps to the same record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from backend_vetting.core.exceptions import InvalidTokenId

# alias -> canonical chain name
CHAIN_ALIASES = {
    "solana": "solana",
    "sol": "solana",
    "ethereum": "ethereum",
    "eth": "ethereum",
    "bsc": "bsc",
    "bnb": "bsc",
    "polygon": "polygon",
    "matic": "polygon",
    "arbitrum": "arbitrum",
    "arb": "arbitrum",
    "base": "base",
    "optimism": "optimism",
    "op": "optimism",
    "avalanche": "avalanche",
    "avax": "avalanche",
}

# GoPlus token_security chain ids; solana has its own endpoint
GOPLUS_CHAIN_IDS = {
    "ethereum": "1",
    "bsc": "56",
    "polygon": "137",
    "arbitrum": "42161",
    "base": "8453",
    "optimism": "10",
    "avalanche": "43114",
    "solana": "solana",
}

_EVM_ADDRESS = re.compile(r"^0x[0-9a-fA-F]{40}$")
_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


@dataclass(frozen=True)
class TokenRef:
    """Normalized (chain, address) pair."""

    chain: str
    address: str

    @property
    def key(self) -> str:
        return f"{self.chain}:{self.address}"

    @property
    def is_solana(self) -> bool:
        return self.chain == "solana"

    @property
    def is_evm(self) -> bool:
        return self.chain != "solana"

    def __str__(self) -> str:
        return self.key


def normalize_chain(chain: str) -> str:
    """Map a chain alias to its canonical name. Raises InvalidTokenId for unknown chains."""
    name = (chain or "").strip().lower()
    if name not in CHAIN_ALIASES:
        raise InvalidTokenId(f"Unsupported chain: {chain!r}")
    return CHAIN_ALIASES[name]


def parse_token_id(token_id: str, default_chain: str = "solana") -> TokenRef:
    """
    Parse ``address`` or ``chain:address`` into a TokenRef.

    EVM addresses are lowercased; Solana addresses are case-sensitive and kept as is.
    """
    raw = (token_id or "").strip()
    if not raw:
        raise InvalidTokenId("token id must be non-empty")
    if ":" in raw:
        chain_part, _, address = raw.partition(":")
        chain = normalize_chain(chain_part)
    else:
        chain, address = normalize_chain(default_chain), raw
    address = address.strip()
    if chain == "solana":
        if not _BASE58_ADDRESS.match(address):
            raise InvalidTokenId(f"Invalid Solana mint address: {address[:16]!r}", token_id=raw)
    else:
        if not _EVM_ADDRESS.match(address):
            raise InvalidTokenId(f"Invalid {chain} contract address: {address[:16]!r}", token_id=raw)
        address = address.lower()
    return TokenRef(chain=chain, address=address)
