"""
musicboard/ledger/contract.py
Shape of the contract binding the gateway talks through.

The binding itself (ABI encoding, signing, broadcasting) is supplied by the
host application. A binding is created per (address, runner) pair: a
read-only transport for reads, the active Session for writes.

NAMING:
Every host-supplied Python surface is snake_case: this binding's methods, and
the capability SDK (`initialize`, `create_instance`,
`create_encrypted_input`, `add32`, `encrypt`, `decrypt`, `decrypt_public`)
including the mapping `encrypt()` returns (`handles`, `input_proof`).
Adapters over a camelCase SDK rename at their boundary. The only camelCase
names read are ledger data fields (`aliasName`, `transactionHash`,
`blockNumber`), which come from the contract ABI and receipt format.
"""

from typing import Any, Callable, Protocol, Sequence, runtime_checkable


@runtime_checkable
class PendingTransaction(Protocol):
    async def wait(self) -> Any:
        """Resolve with the receipt once the transaction is mined."""
        ...


@runtime_checkable
class MusicBoardContract(Protocol):
    async def get_notes(self) -> Sequence[Any]: ...

    async def get_applause_handle(self, note_id: int) -> Any: ...

    async def add_note(self, track: str, message: str, alias: str) -> PendingTransaction: ...

    async def applaud_note(self, note_id: int, ciphertext_handle: Any, proof: Any) -> PendingTransaction: ...


# (address, runner) -> binding
ContractFactory = Callable[[str, Any], MusicBoardContract]
