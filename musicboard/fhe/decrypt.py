"""
musicboard/fhe/decrypt.py
Recovers a cleartext applause value from a ledger handle.

Whether a handle may be decrypted privately (by the holder of the user key)
or publicly depends on the ledger's access-control settings, which the client
cannot inspect up front. So both are tried, private first. When neither
works the raw handle is handed back, flagged as unresolved, so the caller can
still show something.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from musicboard.errors import CapabilityNotReadyError, DecryptUnavailableError
from musicboard.fhe.bootstrap import CapabilityBootstrapper
from musicboard.utils.aio import maybe_await

logger = logging.getLogger(__name__)

# (path label, instance method), tried in order
DECRYPT_PATHS = (
    ("user", "decrypt"),
    ("public", "decrypt_public"),
)


@dataclass
class DecryptResult:
    """
    Attributes:
        value: plaintext when resolved, otherwise the raw handle
        resolved: True only if a decrypt path produced a value
        path: "user" or "public" when resolved
        errors: one entry per path that was attempted and failed
    """
    value: Any
    resolved: bool
    path: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def unavailable(self) -> Optional[DecryptUnavailableError]:
        if self.resolved:
            return None
        return DecryptUnavailableError(
            "; ".join(self.errors) or "No decrypt operation exposed",
            details={"handle": str(self.value)},
        )


class DecryptionResolver:
    def __init__(self, bootstrapper: CapabilityBootstrapper):
        self.bootstrapper = bootstrapper

    async def resolve(self, ledger_address: str, handle: Any) -> DecryptResult:
        """
        Try user decrypt, then public decrypt, against (ledger_address, handle).

        A path that raises or yields None counts as failed. Never raises for
        decrypt failures; check `DecryptResult.resolved`.

        Raises:
            CapabilityNotReadyError: the capability instance has not booted
        """
        if not self.bootstrapper.ready:
            raise CapabilityNotReadyError("FHEVM not ready")
        instance = self.bootstrapper.instance

        errors: List[str] = []
        for label, method in DECRYPT_PATHS:
            operation = getattr(instance, method, None)
            if not callable(operation):
                continue
            try:
                value = await maybe_await(operation(ledger_address, handle))
            except Exception as e:
                logger.info(f"[DecryptionResolver] {label} decrypt failed: {e}")
                errors.append(f"{label}: {e}")
                continue
            if value is None:
                errors.append(f"{label}: no value")
                continue
            return DecryptResult(value=value, resolved=True, path=label, errors=errors)

        logger.warning(f"[DecryptionResolver] Falling back to raw handle for {ledger_address}")
        return DecryptResult(value=handle, resolved=False, errors=errors)
