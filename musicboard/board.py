"""Module board: the surface a presentation layer drives."""
#
# PURPOSE:
# MusicBoard wires the session, capability, ledger, encrypt and decrypt
# components together and exposes the user actions: connect, refresh,
# publish, applaud and reveal. Each action catches its own failures and
# reports them through `message`; none of them raise.
#
# DATA FLOW:
#   publish  → LedgerGateway.add_note → delayed refresh
#   applaud  → InFlightSet.claim → EncryptedIncrementBuilder.build
#              → LedgerGateway.applaud → delayed refresh
#   reveal   → LedgerGateway.read_applause_handle → DecryptionResolver.resolve
#
# RELOAD POLICY:
# An account or network change invalidates the session. Everything derived
# from it (capability instance, note list, in-flight gates, pending refreshes)
# is thrown away and rebuilt from scratch.
#

import asyncio
import importlib
import logging
from typing import Any, Callable, FrozenSet, List, Optional

from musicboard.base.config import MusicBoardConfig, get_config
from musicboard.base.session import Session, SessionManager
from musicboard.errors import (
    ApplauseInFlightError,
    ChainError,
    MusicBoardError,
    NoteValidationError,
    NoWalletProviderError,
    error_message,
    handle_error,
)
from musicboard.fhe.bootstrap import BootState, CapabilityBootstrapper
from musicboard.fhe.decrypt import DecryptionResolver, DecryptResult
from musicboard.fhe.encrypt import EncryptedIncrementBuilder
from musicboard.fhe.runtime import HostRuntime
from musicboard.ledger.contract import ContractFactory
from musicboard.ledger.gateway import LedgerGateway
from musicboard.ledger.inflight import InFlightSet
from musicboard.ledger.models import Note, TransactionReceipt
from musicboard.utils.observer import Signal

logger = logging.getLogger(__name__)


class MusicBoard:
    """
    Client-side orchestrator for one board.

    Args:
        contract_factory: builds ledger contract bindings
        transport: wallet transport (None: no wallet available)
        runtime: host runtime for the script-loaded capability path
        config: client configuration (defaults to get_config())
        read_transport: separate runner for ledger reads, if any
        importer: module importer for the in-process capability path
    """
    def __init__(
        self,
        contract_factory: ContractFactory,
        transport: Any = None,
        runtime: Optional[HostRuntime] = None,
        config: Optional[MusicBoardConfig] = None,
        read_transport: Any = None,
        importer: Callable[[str], Any] = importlib.import_module,
    ):
        self.config = config or get_config()
        self.contract_factory = contract_factory
        self.transport = transport
        self.runtime = runtime
        self.read_transport = read_transport
        self.importer = importer

        self.session_manager = SessionManager(transport)
        self.session_manager.invalidated.connect(self._on_session_invalidated)
        self.in_flight = InFlightSet()

        self.notes: List[Note] = []
        self.message = ""
        self.is_submitting = False
        self.status_changed = Signal("board_status")
        self._reload_task: Optional[asyncio.Task] = None

        self._build_components()

    def _build_components(self) -> None:
        # The capability is bound to the deployment chain (Sepolia by default),
        # not the session chain: the network preset exists for that chain only.
        self.bootstrapper = CapabilityBootstrapper(
            config=self.config.capability,
            runtime=self.runtime,
            transport=self.transport,
            chain_id=self.config.ledger.default_chain_id,
            importer=self.importer,
        )
        self.gateway = LedgerGateway(
            self.contract_factory,
            self.session_manager,
            read_transport=self.read_transport,
            config=self.config.ledger,
            bootstrapper=self.bootstrapper,
        )
        self.gateway.notes_refreshed.connect(self._on_notes_refreshed)
        self.builder = EncryptedIncrementBuilder(self.bootstrapper)
        self.resolver = DecryptionResolver(self.bootstrapper)

    # ========================================================================
    # State
    # ========================================================================

    @property
    def session(self) -> Optional[Session]:
        return self.session_manager.session

    @property
    def sdk_state(self) -> BootState:
        return self.bootstrapper.state

    @property
    def applauding(self) -> FrozenSet[int]:
        return self.in_flight.ids

    def _set_message(self, message: str) -> None:
        self.message = message
        logger.info(f"[MusicBoard] {message}")
        self.status_changed.emit(message)

    def _report_failure(self, action: str, error: Exception) -> None:
        wrapped = handle_error(error)
        logger.debug(f"[MusicBoard] {action}: {wrapped.to_json()}")
        self._set_message(f"{action}: {wrapped.message}")

    def _on_notes_refreshed(self, notes: List[Note]) -> None:
        self.notes = notes
        self.status_changed.emit(self.message)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        """Silent reconnect and capability boot run side by side, then the first read."""
        await asyncio.gather(self.session_manager.restore(), self._boot_capability())
        await self.refresh()

    async def _boot_capability(self) -> None:
        try:
            await self.bootstrapper.boot()
        except MusicBoardError as e:
            self._set_message(error_message(e))

    def _on_session_invalidated(self, reason: str) -> None:
        logger.warning(f"[MusicBoard] Reloading after {reason}")
        self._reload_task = asyncio.create_task(self.reload())

    async def reload(self) -> None:
        """
        Discard all identity-derived state and start over.

        Actions still running on the old components finish on their own:
        their refreshes no longer reach `notes`, and `is_submitting` stays set
        until the publish that set it returns.
        """
        self.gateway.notes_refreshed.disconnect(self._on_notes_refreshed)
        await self.gateway.close()
        self.in_flight.clear()
        self.notes = []
        self._build_components()
        await self.start()

    async def close(self) -> None:
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
            await asyncio.gather(self._reload_task, return_exceptions=True)
        await self.gateway.close()

    # ========================================================================
    # User actions
    # ========================================================================

    async def connect(self) -> Optional[Session]:
        try:
            return await self.session_manager.connect()
        except NoWalletProviderError as e:
            self._set_message(e.message)
        except Exception as e:
            self._report_failure("Connect failed", e)
        return None

    async def refresh(self) -> List[Note]:
        try:
            self.notes = await self.gateway.read()
        except Exception as e:
            self._report_failure("Refresh failed", e)
        return self.notes

    async def publish(self, track: str, message: str, alias: str = "") -> Optional[TransactionReceipt]:
        if self.is_submitting:
            return None
        self.is_submitting = True
        try:
            self._set_message("Submitting...")
            receipt = await self.gateway.add_note(track, message, alias)
        except NoteValidationError as e:
            self._set_message(e.message)
            return None
        except Exception as e:
            self._report_failure("Failed", e)
            return None
        finally:
            self.is_submitting = False
        self._set_message("Note published!")
        return receipt

    async def applaud(self, note_id: int) -> Optional[TransactionReceipt]:
        session = self.session
        if session is None or not self.bootstrapper.ready:
            self._set_message("Connect wallet and wait for FHEVM")
            return None

        # Pinned for the whole action; a reload swaps these attributes
        gateway, builder = self.gateway, self.builder
        try:
            with self.in_flight.claim(note_id):
                address = gateway.contract_address
                if not address:
                    raise ChainError("No ledger deployment configured for this chain")
                increment = await builder.build(address, session.account)
                self._set_message("Sending applause...")
                receipt = await gateway.applaud(note_id, increment, session)
        except ApplauseInFlightError as e:
            logger.info(f"[MusicBoard] {e.message}")
            return None
        except Exception as e:
            self._report_failure("Applause failed", e)
            return None
        self._set_message("Applause sent!")
        return receipt

    async def reveal(self, note_id: int) -> Optional[DecryptResult]:
        address = self.gateway.contract_address
        if not self.bootstrapper.ready or not address:
            self._set_message("FHEVM not ready")
            return None

        try:
            handle = await self.gateway.read_applause_handle(note_id)
            result = await self.resolver.resolve(address, handle)
        except Exception as e:
            self._report_failure("Decrypt failed", e)
            return None

        if result.resolved:
            self._set_message(f"Applause: {result.value}")
        else:
            self._set_message(f"Handle: {result.value}")
        return result
