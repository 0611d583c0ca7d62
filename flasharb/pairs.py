# flasharb/pairs.py
"""
Token Registry & Identities
Holders and assets are checksummed addresses, as on-chain
"""

from web3 import Web3
from decimal import Decimal
from dataclasses import dataclass
from typing import Dict, Optional

# =============================================================================
# TOKEN ADDRESSES (Ethereum Mainnet - All Checksummed)
# =============================================================================

# Stablecoins
DAI = Web3.to_checksum_address("0x6B175474E89094C44Da98b954EedeAC495271d0F")
USDC = Web3.to_checksum_address("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48")

# Wrapped native
WETH = Web3.to_checksum_address("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2")

# =============================================================================
# TOKEN METADATA
# =============================================================================

@dataclass(frozen=True)
class TokenInfo:
    address: str
    symbol: str
    decimals: int


TOKENS: Dict[str, TokenInfo] = {
    DAI: TokenInfo(DAI, "DAI", 18),
    USDC: TokenInfo(USDC, "USDC", 6),
    WETH: TokenInfo(WETH, "WETH", 18),
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def to_address(value: str) -> str:
    """Normalize any address-like string to checksum form"""
    return Web3.to_checksum_address(value)


def derive_address(label: str) -> str:
    """
    Deterministic address for a simulated contract or account.
    Last 20 bytes of keccak(label), like a CREATE2-style derivation.
    """
    digest = Web3.keccak(text=label).hex()
    return Web3.to_checksum_address("0x" + digest[-40:])


def get_token_info(address: str) -> Optional[TokenInfo]:
    """Get token info by address (checksummed or not)"""
    return TOKENS.get(to_address(address))


def get_decimals(address: str) -> int:
    """Get token decimals"""
    info = get_token_info(address)
    return info.decimals if info else 18


def get_symbol(address: str) -> str:
    """Get token symbol"""
    info = get_token_info(address)
    return info.symbol if info else "UNKNOWN"


def to_human(address: str, amount: int) -> Decimal:
    """Smallest-unit integer -> Decimal in token units"""
    return Decimal(amount) / Decimal(10 ** get_decimals(address))


def to_units(address: str, amount_human) -> int:
    """Token units -> smallest-unit integer (floored)"""
    return int(Decimal(str(amount_human)) * Decimal(10 ** get_decimals(address)))
