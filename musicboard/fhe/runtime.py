"""
musicboard/fhe/runtime.py
Host runtime for the script-injection path of capability discovery.

A HostRuntime stands in for the page environment: a registry of installed
globals, the wallet transport, and a loader able to fetch a remote script and
execute it. Code running without a HostRuntime has no way to inject scripts.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import types
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from musicboard.base.config import CapabilityConfig
from musicboard.errors import ScriptLoadError

logger = logging.getLogger(__name__)


class RemoteScriptLoader:
    """
    Fetches a script over HTTP and executes it as a fresh module.

    Nothing is executed unless the body matches a pinned SHA-256 digest.
    Load success or failure are the only observable outcomes: network errors,
    non-2xx responses, digest mismatches and exceptions raised while executing
    the script all surface as ScriptLoadError.
    """
    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def load(self, url: str, sha256: Optional[str] = None) -> types.ModuleType:
        if not sha256:
            raise ScriptLoadError(
                f"Refusing to execute {url}: no SHA-256 digest configured",
                details={"url": url},
            )

        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ScriptLoadError(f"Failed to load script {url}: {e}", details={"url": url}) from e

        digest = hashlib.sha256(response.content).hexdigest()
        if not hmac.compare_digest(digest, sha256.lower()):
            logger.error(f"[RemoteScriptLoader] Digest mismatch for {url}: got {digest}")
            raise ScriptLoadError(
                f"Script {url} failed integrity check",
                details={"url": url, "expected": sha256, "actual": digest},
            )

        name = _module_name(url)
        module = types.ModuleType(name)
        module.__file__ = url
        try:
            code = compile(response.content, url, "exec")
            exec(code, module.__dict__)
        except Exception as e:
            raise ScriptLoadError(f"Script {url} failed to execute: {e}", details={"url": url}) from e

        logger.info(f"[RemoteScriptLoader] Loaded {url}")
        return module

    async def aclose(self):
        await self.client.aclose()


def _module_name(url: str) -> str:
    path = urlparse(url).path.rsplit("/", 1)[-1] or "remote_script"
    stem = path.split(".", 1)[0]
    return "".join(ch if ch.isalnum() else "_" for ch in stem)


class HostRuntime:
    """
    Page-like environment the capability bootstrapper can fall back to.

    Args:
        wallet: wallet transport handed to the capability instance
        script_loader: loader used by inject_script (a RemoteScriptLoader by default)
        globals: pre-installed globals (name -> object)
    """
    def __init__(
        self,
        wallet: Any = None,
        script_loader: Optional[RemoteScriptLoader] = None,
        globals: Optional[Dict[str, Any]] = None,
    ):
        self.wallet = wallet
        self.script_loader = script_loader or RemoteScriptLoader()
        self.globals: Dict[str, Any] = dict(globals or {})

    @classmethod
    def from_config(cls, config: CapabilityConfig, wallet: Any = None, **kwargs) -> "HostRuntime":
        """Runtime whose script loader uses the configured fetch timeout."""
        return cls(wallet=wallet, script_loader=RemoteScriptLoader(timeout=config.script_timeout), **kwargs)

    def get_global(self, name: str) -> Any:
        return self.globals.get(name)

    async def inject_script(self, url: str, global_name: str, sha256: Optional[str] = None) -> Any:
        """
        Load the script at `url` and install what it exports as `global_name`.

        A script that defines a top-level `global_name` installs that object;
        otherwise the script module itself is installed.
        """
        module = await self.script_loader.load(url, sha256=sha256)
        exported = getattr(module, global_name, module)
        self.globals[global_name] = exported
        logger.debug(f"[HostRuntime] Installed global {global_name} from {url}")
        return exported
