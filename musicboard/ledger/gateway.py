"""
musicboard/ledger/gateway.py
The only component that talks to the MusicBoard ledger.

Reads go through a read-only binding (no signer). Writes go through a binding
created for the active Session and fail fast without one. Every accepted
write starts a background refresh that polls the ledger until the write shows
up (bounded), because a confirmed transaction is not necessarily visible to
the next read yet.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from musicboard.base.config import LedgerConfig
from musicboard.base.session import Session, SessionManager
from musicboard.errors import (
    CapabilityNotReadyError,
    ChainError,
    ConfirmationTimeoutError,
    MusicBoardError,
    NoSessionError,
    NoteValidationError,
    NoWalletProviderError,
    error_message,
)
from musicboard.fhe.bootstrap import CapabilityBootstrapper
from musicboard.ledger.addresses import AddressEntry, resolve_address
from musicboard.ledger.contract import ContractFactory, MusicBoardContract
from musicboard.ledger.models import EncryptedIncrement, Note, TransactionReceipt
from musicboard.utils.aio import maybe_await
from musicboard.utils.observer import Signal

logger = logging.getLogger(__name__)

RefreshPredicate = Callable[[List[Note]], bool]


def sort_notes(notes: List[Note]) -> List[Note]:
    """Newest first; notes with equal timestamps keep ledger order."""
    return sorted(notes, key=lambda note: note.timestamp, reverse=True)


class LedgerGateway:
    """
    Args:
        contract_factory: builds a contract binding for (address, runner)
        session_manager: source of the signing session for writes
        read_transport: runner for read-only bindings (defaults to the wallet transport)
        config: ledger settings (address override, refresh and confirmation timing)
        bootstrapper: capability bootstrapper; applause needs it ready
        address_book: chain id -> deployment, defaults to the shipped book
    """
    def __init__(
        self,
        contract_factory: ContractFactory,
        session_manager: SessionManager,
        read_transport: Any = None,
        config: Optional[LedgerConfig] = None,
        bootstrapper: Optional[CapabilityBootstrapper] = None,
        address_book: Optional[Dict[int, AddressEntry]] = None,
    ):
        self.contract_factory = contract_factory
        self.session_manager = session_manager
        self.read_transport = read_transport
        self.config = config or LedgerConfig()
        self.bootstrapper = bootstrapper
        self.address_book = address_book

        self.notes_refreshed = Signal("notes_refreshed")
        self.last_notes: List[Note] = []
        self._refresh_tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def contract_address(self) -> Optional[str]:
        return resolve_address(
            self.session_manager.chain_id,
            self.config.default_chain_id,
            override=self.config.contract_address,
            book=self.address_book,
        )

    # ========================================================================
    # Reads
    # ========================================================================

    def _reader(self, address: str) -> MusicBoardContract:
        transport = self.read_transport if self.read_transport is not None else self.session_manager.transport
        if transport is None:
            raise NoWalletProviderError("No transport available for ledger reads")
        return self.contract_factory(address, transport)

    async def read(self) -> List[Note]:
        """
        Fetch every note, newest first.

        Returns an empty list when no deployment is known for the chain.
        """
        address = self.contract_address
        if not address:
            logger.info("[LedgerGateway] No ledger deployment configured for this chain")
            return []

        raw_notes = await self._reader(address).get_notes()
        notes = sort_notes([Note.from_raw(raw) for raw in raw_notes])
        self.last_notes = notes
        logger.debug(f"[LedgerGateway] Read {len(notes)} notes from {address}")
        return notes

    async def read_applause_handle(self, note_id: int) -> Any:
        address = self.contract_address
        if not address:
            raise ChainError("No ledger deployment configured for this chain")
        return await self._reader(address).get_applause_handle(note_id)

    # ========================================================================
    # Writes
    # ========================================================================

    def _writer(self, expected: Optional[Session] = None) -> MusicBoardContract:
        session: Session = self.session_manager.require_session()
        if expected is not None and session is not expected:
            raise NoSessionError(
                "Session changed while the write was being prepared",
                details={"expected": expected.account, "current": session.account},
            )
        address = self.contract_address
        if not address:
            raise ChainError(f"No ledger deployment for chain {session.chain_id}")
        return self.contract_factory(address, session)

    async def add_note(self, track: str, message: str, alias: str = "") -> TransactionReceipt:
        """
        Publish a note.

        Raises:
            NoteValidationError: track or message is empty
            NoSessionError: no signing session
            ChainError: transaction rejected or reverted
            ConfirmationTimeoutError: confirmation did not arrive in time
        """
        if not track or not message:
            raise NoteValidationError(
                "Please fill track and message",
                details={"track": bool(track), "message": bool(message)},
            )
        writer = self._writer()
        known = len(self.last_notes)

        receipt = await self._submit("addNote", lambda: writer.add_note(track, message, alias or ""))
        logger.info(f"[LedgerGateway] Note published (tx {receipt.tx_hash})")
        self._schedule_refresh(self.config.note_refresh_delay, lambda notes: len(notes) > known)
        return receipt

    async def applaud(
        self,
        note_id: int,
        increment: EncryptedIncrement,
        session: Optional[Session] = None,
    ) -> TransactionReceipt:
        """
        Submit one encrypted applause increment for `note_id`.

        `session` is the session the increment was built under. If the active
        session is no longer that object, or the increment was encrypted for
        another account or ledger, nothing is sent.

        The increment is consumed before submission and can never be sent
        again, whether or not the transaction is accepted.

        Raises:
            NoSessionError: no session, or the identity changed since `session`
        """
        writer = self._writer(session)
        current = self.session_manager.session
        if increment.account is not None and increment.account.lower() != current.account.lower():
            raise NoSessionError(
                f"Increment was encrypted for {increment.account}, not {current.account}",
                details={"note_id": note_id},
            )
        if increment.ledger_address is not None and increment.ledger_address != self.contract_address:
            raise ChainError(
                f"Increment was encrypted for ledger {increment.ledger_address}",
                details={"note_id": note_id},
            )
        if self.bootstrapper is None or not self.bootstrapper.ready:
            raise CapabilityNotReadyError("Encryption capability is not ready")
        try:
            increment.consume()
        except ValueError as e:
            raise MusicBoardError(str(e), details={"note_id": note_id}) from e

        receipt = await self._submit(
            "applaudNote",
            lambda: writer.applaud_note(note_id, increment.ciphertext_handle, increment.proof),
        )
        logger.info(f"[LedgerGateway] Applause sent for note {note_id} (tx {receipt.tx_hash})")
        # The counter is encrypted, so there is nothing to poll for
        self._schedule_refresh(self.config.applause_refresh_delay, None)
        return receipt

    async def _submit(self, label: str, send: Callable[[], Any]) -> TransactionReceipt:
        try:
            tx = await maybe_await(send())
        except MusicBoardError:
            raise
        except Exception as e:
            raise ChainError(f"{label} rejected: {error_message(e)}", details={"call": label}) from e

        try:
            raw = await asyncio.wait_for(tx.wait(), timeout=self.config.confirmation_timeout)
        except asyncio.TimeoutError as e:
            raise ConfirmationTimeoutError(
                f"{label} not confirmed within {self.config.confirmation_timeout}s",
                details={"call": label},
            ) from e
        except Exception as e:
            raise ChainError(f"{label} failed: {error_message(e)}", details={"call": label}) from e

        receipt = TransactionReceipt.from_raw(raw)
        if receipt.reverted:
            raise ChainError(f"{label} reverted", details={"call": label, "tx_hash": receipt.tx_hash})
        return receipt

    # ========================================================================
    # Post-write refresh
    # ========================================================================

    def _schedule_refresh(self, delay: float, predicate: Optional[RefreshPredicate]) -> None:
        if self._closed:
            logger.debug("[LedgerGateway] Closed; skipping post-write refresh")
            return
        task = asyncio.create_task(self._refresh_after_write(delay, predicate))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    async def _refresh_after_write(self, delay: float, predicate: Optional[RefreshPredicate]) -> None:
        await asyncio.sleep(delay)
        attempts = max(1, self.config.refresh_attempts) if predicate else 1
        latest: Optional[List[Note]] = None

        for attempt in range(1, attempts + 1):
            try:
                latest = await self.read()
            except Exception as e:
                logger.warning(f"[LedgerGateway] Refresh attempt {attempt}/{attempts} failed: {e}")
            else:
                if predicate is None or predicate(latest):
                    self.notes_refreshed.emit(latest)
                    return
            if attempt < attempts:
                await asyncio.sleep(self.config.refresh_interval)

        logger.warning(f"[LedgerGateway] Write not visible after {attempts} reads")
        if latest is not None:
            self.notes_refreshed.emit(latest)

    async def drain(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._refresh_tasks:
            await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding refreshes; writes finishing later schedule none."""
        self._closed = True
        for task in list(self._refresh_tasks):
            task.cancel()
        await asyncio.gather(*list(self._refresh_tasks), return_exceptions=True)
        self._refresh_tasks.clear()
