"""Pytest configuration and shared fakes for the MusicBoard client."""
import asyncio
import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from musicboard.base.config import LedgerConfig, MusicBoardConfig, set_config

ACCOUNT = "0x1111111111111111111111111111111111111111"
SEPOLIA_HEX = "0xaa36a7"
LEDGER_ADDRESS = "0x86d708CAb1394F9F6dbe4a96441e2A58B166cbC7"


# ============================================================================
# Wallet
# ============================================================================

class FakeWallet:
    """Wallet transport with a fixed authorized account list."""
    def __init__(self, accounts: Optional[List[str]] = None, chain_id: str = SEPOLIA_HEX, authorized: bool = True):
        self.accounts = accounts if accounts is not None else [ACCOUNT]
        self.chain_id = chain_id
        self.authorized = authorized
        self.calls: List[str] = []
        self._listeners: Dict[str, list] = {}

    async def request(self, method: str, params=None):
        self.calls.append(method)
        if method == "eth_chainId":
            return self.chain_id
        if method == "eth_accounts":
            return self.accounts if self.authorized else []
        if method == "eth_requestAccounts":
            self.authorized = True
            return self.accounts
        raise ValueError(f"unsupported method {method}")

    def on(self, event, handler):
        self._listeners.setdefault(event, []).append(handler)

    def emit(self, event, *args):
        for handler in list(self._listeners.get(event, [])):
            handler(*args)


# ============================================================================
# Ledger
# ============================================================================

class FakeTx:
    def __init__(self, receipt: Any = None, error: Optional[Exception] = None, hang: bool = False):
        self.receipt = receipt if receipt is not None else {"transactionHash": "0xabc", "blockNumber": 1, "status": 1}
        self.error = error
        self.hang = hang

    async def wait(self):
        if self.hang:
            await asyncio.Event().wait()
        if self.error:
            raise self.error
        return self.receipt


class FakeLedger:
    """In-memory stand-in for the deployed MusicBoard contract."""
    def __init__(self):
        self.notes: List[Dict[str, Any]] = []
        self.applause: Dict[int, List[Any]] = {}
        self.applaud_calls: List[tuple] = []
        self.runners: List[Any] = []
        self.clock = itertools.count(1_700_000_000)
        self.reject_next: Optional[Exception] = None
        self.revert_next = False
        self.gate = None  # asyncio.Event blocking applaud submissions
        self.note_gate = None  # asyncio.Event blocking note submissions

    def seed(self, author, track, message, alias="", timestamp=None):
        note_id = len(self.notes)
        self.notes.append({
            "id": note_id,
            "author": author,
            "track": track,
            "message": message,
            "aliasName": alias,
            "timestamp": timestamp if timestamp is not None else next(self.clock),
        })
        self.applause[note_id] = []
        return note_id

    def _result(self):
        if self.reject_next is not None:
            error, self.reject_next = self.reject_next, None
            raise error
        if self.revert_next:
            self.revert_next = False
            return FakeTx({"transactionHash": "0xdead", "blockNumber": 2, "status": 0})
        return FakeTx()


class FakeContract:
    def __init__(self, ledger: FakeLedger, address: str, runner: Any):
        self.ledger = ledger
        self.address = address
        self.runner = runner

    async def get_notes(self):
        return [dict(n) for n in self.ledger.notes]

    async def get_applause_handle(self, note_id):
        return f"handle-{note_id}"

    async def add_note(self, track, message, alias):
        if self.ledger.note_gate is not None:
            await self.ledger.note_gate.wait()
        tx = self.ledger._result()
        author = getattr(self.runner, "account", "0x0")
        self.ledger.seed(author, track, message, alias)
        return tx

    async def applaud_note(self, note_id, ciphertext_handle, proof):
        if self.ledger.gate is not None:
            await self.ledger.gate.wait()
        self.ledger.applaud_calls.append((note_id, ciphertext_handle, proof))
        tx = self.ledger._result()
        self.ledger.applause.setdefault(note_id, []).append(ciphertext_handle)
        return tx


def make_contract_factory(ledger: FakeLedger):
    def factory(address, runner):
        ledger.runners.append(runner)
        return FakeContract(ledger, address, runner)
    return factory


# ============================================================================
# Encryption capability
# ============================================================================

class FakeBuffer:
    def __init__(self, instance, address, account):
        self.instance = instance
        self.address = address
        self.account = account
        self.values: List[int] = []

    def add32(self, value):
        self.values.append(value)

    async def encrypt(self):
        handle = f"ct-{next(self.instance.counter)}-{self.values}".encode()
        return {"handles": [handle], "input_proof": b"proof"}


class FakeInstance:
    def __init__(self, network_config):
        self.network_config = network_config
        self.counter = itertools.count()
        self.buffers: List[FakeBuffer] = []

    def create_encrypted_input(self, address, account):
        buffer = FakeBuffer(self, address, account)
        self.buffers.append(buffer)
        return buffer


class FakeSdk:
    """Capability factory exposing both required entry points."""
    SepoliaConfig = {"chainId": 11155111, "relayerUrl": "https://relayer.example"}

    def __init__(self, instance_cls=FakeInstance):
        self.instance_cls = instance_cls
        self.initialized = False
        self.created: List[Any] = []

    async def initialize(self):
        self.initialized = True

    def create_instance(self, network_config):
        instance = self.instance_cls(network_config)
        self.created.append(instance)
        return instance


def missing_module_importer(name):
    raise ImportError(f"No module named {name!r}")


def module_importer(module):
    def importer(name):
        return module
    return importer


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def config():
    cfg = MusicBoardConfig(
        ledger=LedgerConfig(
            note_refresh_delay=0,
            applause_refresh_delay=0,
            refresh_attempts=3,
            refresh_interval=0,
            confirmation_timeout=1.0,
        ),
    )
    set_config(cfg)
    yield cfg
    set_config(None)


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def contract_factory(ledger):
    return make_contract_factory(ledger)


@pytest.fixture
def sdk():
    return FakeSdk()


@pytest.fixture
def sdk_module(sdk):
    return SimpleNamespace(initialize=sdk.initialize, create_instance=sdk.create_instance, SepoliaConfig=sdk.SepoliaConfig)
