"""
musicboard/ledger/addresses.py
Known MusicBoard deployments, keyed by chain id.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class AddressEntry:
    chain_id: int
    chain_name: str
    address: str


MUSIC_BOARD_ADDRESSES: Dict[int, AddressEntry] = {
    11155111: AddressEntry(11155111, "Sepolia", "0x86d708CAb1394F9F6dbe4a96441e2A58B166cbC7"),
}


def resolve_address(
    chain_id: Optional[int],
    default_chain_id: int,
    override: Optional[str] = None,
    book: Optional[Dict[int, AddressEntry]] = None,
) -> Optional[str]:
    """
    Pick the ledger address to talk to.

    Order: explicit override, the default chain's deployment, then the
    deployment on the session's chain.
    """
    if override:
        return override
    book = MUSIC_BOARD_ADDRESSES if book is None else book
    entry = book.get(default_chain_id)
    if entry is None and chain_id is not None:
        entry = book.get(chain_id)
    return entry.address if entry else None
