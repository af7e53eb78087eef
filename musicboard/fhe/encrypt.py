"""
musicboard/fhe/encrypt.py
Builds the encrypted input for one applause unit.
"""

import logging

from musicboard.errors import CapabilityNotReadyError, MusicBoardError
from musicboard.fhe.bootstrap import CapabilityBootstrapper
from musicboard.ledger.models import EncryptedIncrement, field_of
from musicboard.utils.aio import maybe_await

logger = logging.getLogger(__name__)

# Only single-unit applause exists; magnitude is never caller-controlled
APPLAUSE_INCREMENT = 1


class EncryptedIncrementBuilder:
    """
    Produces a fresh ciphertext + proof for the value 1, scoped to a ledger
    address and the submitting account. Every call encrypts anew.
    """
    def __init__(self, bootstrapper: CapabilityBootstrapper):
        self.bootstrapper = bootstrapper

    async def build(self, ledger_address: str, account: str) -> EncryptedIncrement:
        """
        Args:
            ledger_address: contract the ciphertext will be submitted to
            account: address that will sign the submission

        Raises:
            CapabilityNotReadyError: the capability instance has not booted
        """
        if not self.bootstrapper.ready:
            raise CapabilityNotReadyError(
                f"Encryption capability is {self.bootstrapper.state.value}",
                details={"state": self.bootstrapper.state.value},
            )
        instance = self.bootstrapper.instance

        buffer = instance.create_encrypted_input(ledger_address, account)
        buffer.add32(APPLAUSE_INCREMENT)
        encrypted = await maybe_await(buffer.encrypt())

        handles = field_of(encrypted, "handles", default=None)
        proof = field_of(encrypted, "input_proof", default=None)
        if not handles or proof is None:
            raise MusicBoardError("Encryption returned no handle or proof")

        logger.debug(f"[EncryptedIncrementBuilder] Encrypted increment for {account} on {ledger_address}")
        return EncryptedIncrement(
            ciphertext_handle=handles[0],
            proof=proof,
            account=account,
            ledger_address=ledger_address,
        )
