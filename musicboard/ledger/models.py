"""
musicboard/ledger/models.py
Data shapes exchanged with the ledger.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

# Positional layout of a note tuple as returned by the ledger read surface
NOTE_FIELDS = ("id", "author", "track", "message", "aliasName", "timestamp", "applausePlain")


def field_of(raw: Any, *names: str, default: Any = None) -> Any:
    """Read the first present field from a mapping or an attribute-style record."""
    for name in names:
        if isinstance(raw, Mapping):
            if name in raw:
                return raw[name]
        elif hasattr(raw, name):
            return getattr(raw, name)
    return default


class Note(BaseModel):
    id: int = Field(ge=0)
    author: str
    track: str
    message: str
    alias: str = ""
    timestamp: int = Field(description="Unix seconds")
    cached_applause: Optional[int] = Field(default=None, description="Plaintext applause if the ledger exposes one")

    model_config = {"frozen": True}

    @classmethod
    def from_raw(cls, raw: Any) -> "Note":
        """
        Map one raw ledger record into a Note.

        Accepts mappings, attribute-style records or positional tuples in
        NOTE_FIELDS order. A missing applause value stays None.
        """
        if isinstance(raw, (tuple, list)):
            raw = dict(zip(NOTE_FIELDS, raw))

        applause = field_of(raw, "applausePlain", "applause_plain", "cached_applause")
        return cls(
            id=int(field_of(raw, "id")),
            author=str(field_of(raw, "author")),
            track=str(field_of(raw, "track")),
            message=str(field_of(raw, "message")),
            alias=str(field_of(raw, "aliasName", "alias", default="") or ""),
            timestamp=int(field_of(raw, "timestamp")),
            cached_applause=int(applause) if applause is not None else None,
        )

    @property
    def display_name(self) -> str:
        if self.alias:
            return self.alias
        return f"{self.author[:6]}...{self.author[-4:]}"


class TransactionReceipt(BaseModel):
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    status: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "TransactionReceipt":
        if raw is None:
            return cls()
        tx_hash = field_of(raw, "transactionHash", "hash", "tx_hash")
        block = field_of(raw, "blockNumber", "block_number")
        status = field_of(raw, "status")
        return cls(
            tx_hash=str(tx_hash) if tx_hash is not None else None,
            block_number=int(block) if block is not None else None,
            status=int(status) if status is not None else None,
        )

    @property
    def reverted(self) -> bool:
        return self.status == 0


@dataclass
class EncryptedIncrement:
    """
    Ciphertext handle plus validity proof for one applause unit.

    Scoped to the ledger address and account it was encrypted for, and
    single-use: the gateway consumes it when submitting, and a consumed
    increment cannot be submitted again.
    """
    ciphertext_handle: Any
    proof: Any
    account: Optional[str] = None
    ledger_address: Optional[str] = None
    consumed: bool = field(default=False, compare=False)

    def consume(self) -> "EncryptedIncrement":
        if self.consumed:
            raise ValueError("EncryptedIncrement has already been submitted")
        self.consumed = True
        return self
