"""
musicboard/fhe/bootstrap.py
Acquires the encryption capability instance.

PURPOSE:
The capability factory can come from two places: an importable module in this
process, or a remote script that installs the factory as a global in the host
runtime. The in-process path is tried first; when it is missing or incomplete
the bootstrapper falls through to the global/script path. Once a factory is in
hand it is initialized and asked for an instance bound to the active network
and wallet transport.

STATE MACHINE:

    IDLE ──boot──► LOADING ──ok──► READY
                      │
                      └──fail──► ERROR   (terminal for this runtime)
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from musicboard.base.config import SEPOLIA_CHAIN_ID, CapabilityConfig
from musicboard.errors import BootError, EnvironmentUnsupportedError, MusicBoardError, error_message
from musicboard.fhe.runtime import HostRuntime
from musicboard.utils.aio import maybe_await
from musicboard.utils.observer import Signal

logger = logging.getLogger(__name__)

REQUIRED_ENTRY_POINTS = ("initialize", "create_instance")


class BootState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class FactorySource(str, Enum):
    INLINE = "found-inline"
    GLOBAL = "found-global"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class FactoryResolution:
    """Outcome of factory discovery, tagged with where the factory came from."""
    source: FactorySource
    factory: Any = None
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.source is not FactorySource.UNAVAILABLE


def missing_entry_points(candidate: Any) -> list:
    """Names of required factory entry points `candidate` does not expose."""
    if candidate is None:
        return list(REQUIRED_ENTRY_POINTS)
    return [name for name in REQUIRED_ENTRY_POINTS if not callable(getattr(candidate, name, None))]


class CapabilityBootstrapper:
    """
    Creates the capability instance once and hands it out read-only.

    Args:
        config: where to look for the factory and which network preset to use
        runtime: host runtime for the script-injection path (None: unsupported)
        transport: wallet transport bound into the instance (defaults to runtime.wallet)
        chain_id: active chain; selects the network preset
        importer: module importer for the in-process path
    """
    def __init__(
        self,
        config: Optional[CapabilityConfig] = None,
        runtime: Optional[HostRuntime] = None,
        transport: Any = None,
        chain_id: Optional[int] = None,
        importer: Callable[[str], Any] = importlib.import_module,
    ):
        self.config = config or CapabilityConfig()
        self.runtime = runtime
        self.transport = transport if transport is not None else getattr(runtime, "wallet", None)
        self.chain_id = chain_id or SEPOLIA_CHAIN_ID
        self.importer = importer

        self.state = BootState.IDLE
        self.instance: Any = None
        self.error: Optional[MusicBoardError] = None
        self.resolution: Optional[FactoryResolution] = None
        self.state_changed = Signal("capability_state")
        self._lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self.state is BootState.READY

    def _set_state(self, state: BootState) -> None:
        logger.info(f"[CapabilityBootstrapper] {self.state.value} -> {state.value}")
        self.state = state
        self.state_changed.emit(state)

    async def boot(self) -> Any:
        """
        Return the capability instance, creating it on first call.

        Concurrent callers share one attempt. After a failure every call
        re-raises the same error; only a fresh runtime can recover.

        Raises:
            EnvironmentUnsupportedError: script path needed but no host runtime
            BootError: anything else, with the underlying error as __cause__
        """
        async with self._lock:
            if self.state is BootState.READY:
                return self.instance
            if self.state is BootState.ERROR:
                raise self.error

            self._set_state(BootState.LOADING)
            try:
                self.instance = await self._create_instance()
            except (EnvironmentUnsupportedError, BootError) as e:
                self._fail(e)
                raise
            except Exception as e:
                error = BootError(error_message(e), details={"cause": type(e).__name__})
                self._fail(error)
                raise error from e

            self._set_state(BootState.READY)
            return self.instance

    def _fail(self, error: MusicBoardError) -> None:
        logger.error(f"[CapabilityBootstrapper] Boot failed: {error.message}")
        self.error = error
        self._set_state(BootState.ERROR)

    async def _create_instance(self) -> Any:
        self.resolution = await self.resolve_factory()
        if not self.resolution.found:
            raise BootError(f"Capability factory unavailable: {self.resolution.detail}")

        factory = self.resolution.factory
        logger.info(f"[CapabilityBootstrapper] Using factory ({self.resolution.source.value})")
        await maybe_await(factory.initialize())
        return await maybe_await(factory.create_instance(self.network_config(factory)))

    def network_config(self, factory: Any) -> Dict[str, Any]:
        """Network preset exposed by the factory, merged with the wallet transport."""
        preset: Dict[str, Any] = {}
        name = self.config.preset_name(self.chain_id)
        raw = getattr(factory, name, None) if name else None
        if isinstance(raw, Mapping):
            preset = dict(raw)
        elif name:
            logger.warning(f"[CapabilityBootstrapper] Factory has no {name} preset")
        return {**preset, "network": self.transport}

    # ------------------------------------------------------------------
    # Factory discovery
    # ------------------------------------------------------------------

    async def resolve_factory(self) -> FactoryResolution:
        resolution = self._resolve_inline()
        if resolution.found:
            return resolution
        logger.info(f"[CapabilityBootstrapper] In-process factory unavailable ({resolution.detail}); trying global")
        return await self._resolve_global()

    def _resolve_inline(self) -> FactoryResolution:
        try:
            module = self.importer(self.config.module_name)
        except Exception as e:
            return FactoryResolution(FactorySource.UNAVAILABLE, detail=f"import failed: {e}")

        for candidate in (module, getattr(module, "default", None)):
            if candidate is not None and not missing_entry_points(candidate):
                return FactoryResolution(FactorySource.INLINE, factory=candidate)

        missing = ", ".join(missing_entry_points(module))
        return FactoryResolution(FactorySource.UNAVAILABLE, detail=f"module missing {missing}")

    async def _resolve_global(self) -> FactoryResolution:
        if self.runtime is None:
            raise EnvironmentUnsupportedError("No host runtime available for script loading")

        name = self.config.global_name
        factory = self.runtime.get_global(name)
        if factory is None:
            factory = await self.runtime.inject_script(
                self.config.script_url, name, sha256=self.config.script_sha256
            )

        missing = missing_entry_points(factory)
        if missing:
            return FactoryResolution(
                FactorySource.UNAVAILABLE,
                detail=f"global {name} missing {', '.join(missing)}",
            )
        return FactoryResolution(FactorySource.GLOBAL, factory=factory)
