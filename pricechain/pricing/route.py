"""
Pool interface constants and hop-chain construction from token symbols.
"""

from typing import Dict, List, Sequence, Tuple

from web3 import Web3

from pricechain.errors import ChainMismatch
from pricechain.pricing.models import HopSpec

# getReserves() on a constant-product pair
GET_RESERVES_SEL = bytes.fromhex("0902f1ac")
GET_RESERVES_TYPES = ["uint112", "uint112", "uint32"]
GET_RESERVES_SIZE = 32 * len(GET_RESERVES_TYPES)


def checksum_pool(address: str) -> str:
    """Validate a 20-byte hex pool address and return it checksummed."""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ChainMismatch(f"not a 20-byte hex address: {address!r}", pool=str(address))
    return Web3.to_checksum_address(address)


def _checked(address: str, hop: int) -> str:
    try:
        return checksum_pool(address)
    except ChainMismatch as e:
        raise e.at_hop(hop)


def parse_pair(label: str) -> Tuple[str, str]:
    """'LINK/WETH' → ('LINK', 'WETH'), slot0 first."""
    parts = [p.strip().upper() for p in label.split("/")]
    if len(parts) != 2 or not all(parts):
        raise ChainMismatch(f"pair label must look like TOKEN0/TOKEN1, got {label!r}")
    return parts[0], parts[1]


def build_hops(
    asset: str,
    pools: Sequence[Tuple[str, str]],
    decimals: Dict[str, int],
) -> List[HopSpec]:
    """Build HopSpecs by walking from ASSET through each pool.

    pools: ordered (address, "TOKEN0/TOKEN1") entries.
    decimals: symbol → decimal exponent.

    For each pool the token we currently "hold" picks the base slot, and the
    pool's other token becomes the next one held — so hop i's quote token is
    hop i+1's base token by construction.
    """
    if not pools:
        raise ChainMismatch("price chain needs at least one hop")

    table = {sym.upper(): d for sym, d in decimals.items()}
    current = asset.upper()
    hops: List[HopSpec] = []

    for i, (address, label) in enumerate(pools):
        token0, token1 = parse_pair(label)
        if current == token0:
            base_slot, quote = 0, token1
        elif current == token1:
            base_slot, quote = 1, token0
        else:
            raise ChainMismatch(
                f"{label} does not contain {current} — hops don't link", hop=i, pool=address,
            )

        for sym in (current, quote):
            if sym not in table:
                raise ChainMismatch(f"no decimal exponent for {sym}", hop=i, pool=address)

        hops.append(HopSpec(
            pool_address=_checked(address, i),
            base_slot=base_slot,
            base_decimals=table[current],
            quote_decimals=table[quote],
            base_symbol=current,
            quote_symbol=quote,
        ))
        current = quote

    return hops


def reference_symbol(hops: Sequence[HopSpec]) -> str:
    """Symbol of the token the chain ends in, if known."""
    return (hops[-1].quote_symbol or "REF") if hops else "REF"
