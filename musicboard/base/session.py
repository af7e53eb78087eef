"""Module session: wallet connectivity and the signing session."""
#
# PURPOSE:
# Owns the connection to the wallet transport: which account is active, on
# which chain, and whether writes can be signed. Every ledger write reads the
# session; nothing else mutates it.
#
# LIFECYCLE:
# - restore(): silent reconnection, no permission prompt
# - connect(): explicit permission request
# - chainChanged / accountsChanged: session is dropped and `invalidated` fires.
#   Subscribers must rebuild everything derived from the old identity; the
#   session is never patched in place.
#

import logging
from dataclasses import dataclass
from typing import Any, Optional

from musicboard.errors import NoSessionError, NoWalletProviderError
from musicboard.utils.observer import Signal

logger = logging.getLogger(__name__)

LIFECYCLE_EVENTS = ("chainChanged", "accountsChanged")


@dataclass(frozen=True)
class Session:
    """Authenticated, network-scoped identity under which writes are signed."""
    account: str
    chain_id: int
    can_sign: bool = True


def parse_chain_id(raw: Any) -> int:
    """Chain ids arrive as hex quantities ("0xaa36a7") or plain integers."""
    if isinstance(raw, str):
        return int(raw, 16) if raw.lower().startswith("0x") else int(raw)
    return int(raw)


class SessionManager:
    """
    Tracks the active wallet session.

    Args:
        transport: wallet transport exposing `request(method, params)` and,
                   optionally, `on(event, handler)`. None means no wallet.
    """
    def __init__(self, transport: Optional[Any] = None):
        self.transport = transport
        self.invalidated = Signal("session_invalidated")
        self._session: Optional[Session] = None
        self.chain_id: Optional[int] = None

        subscribe = getattr(transport, "on", None)
        if callable(subscribe):
            for event in LIFECYCLE_EVENTS:
                subscribe(event, self._make_lifecycle_handler(event))

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def require_session(self) -> Session:
        """Return the signing session or fail fast; never prompts."""
        if self._session is None or not self._session.can_sign:
            raise NoSessionError("Connect a wallet first")
        return self._session

    async def restore(self) -> Optional[Session]:
        """
        Reattach to an already-authorized account without prompting.

        Failure is non-fatal: it is logged and the session stays absent.
        """
        if self.transport is None:
            return None
        try:
            self.chain_id = parse_chain_id(await self.transport.request("eth_chainId", []))
            accounts = await self.transport.request("eth_accounts", [])
        except Exception as e:
            logger.info(f"[SessionManager] Silent reconnect failed: {e}")
            return None

        if accounts:
            self._session = Session(account=accounts[0], chain_id=self.chain_id)
            logger.info(f"[SessionManager] Restored session {self._session.account} on chain {self.chain_id}")
        return self._session

    async def connect(self) -> Session:
        """
        Ask the wallet for permission and build a session from the result.

        Raises:
            NoWalletProviderError: no transport to connect through
        """
        if self.transport is None:
            raise NoWalletProviderError("No wallet provider available")

        accounts = await self.transport.request("eth_requestAccounts", [])
        if not accounts:
            raise NoSessionError("Wallet returned no accounts")
        self.chain_id = parse_chain_id(await self.transport.request("eth_chainId", []))
        self._session = Session(account=accounts[0], chain_id=self.chain_id)
        logger.info(f"[SessionManager] Connected {self._session.account} on chain {self.chain_id}")
        return self._session

    def _make_lifecycle_handler(self, event: str):
        def handler(*_args):
            self.invalidate(event)
        return handler

    def invalidate(self, reason: str) -> None:
        logger.warning(f"[SessionManager] Session invalidated ({reason}); dependent state must reload")
        self._session = None
        self.chain_id = None
        self.invalidated.emit(reason)
