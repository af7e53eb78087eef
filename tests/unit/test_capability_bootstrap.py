"""
tests/unit/test_capability_bootstrap.py
Factory discovery (in-process module vs. host global vs. remote script) and
the idle/loading/ready/error lifecycle.
"""
import asyncio
import hashlib
from types import SimpleNamespace

import httpx
import pytest

from conftest import FakeSdk, FakeWallet, missing_module_importer, module_importer
from musicboard.base.config import CapabilityConfig
from musicboard.errors import BootError, EnvironmentUnsupportedError, ScriptLoadError
from musicboard.fhe.bootstrap import BootState, CapabilityBootstrapper, FactorySource
from musicboard.fhe.runtime import HostRuntime, RemoteScriptLoader

SCRIPT_URL = "https://cdn.example/relayer-sdk-js.umd.py"

SDK_SCRIPT = '''
class _Instance:
    def __init__(self, config):
        self.config = config

class relayerSDK:
    SepoliaConfig = {"chainId": 11155111}
    initialized = False

    @classmethod
    def initialize(cls):
        cls.initialized = True

    @classmethod
    def create_instance(cls, config):
        return _Instance(config)
'''


def pinned(body, **kwargs):
    return CapabilityConfig(script_url=SCRIPT_URL, script_sha256=hashlib.sha256(body.encode()).hexdigest(), **kwargs)


def script_runtime(handler, wallet=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HostRuntime(wallet=wallet, script_loader=RemoteScriptLoader(client=client))


@pytest.mark.asyncio
async def test_inline_module_is_preferred(sdk_module, sdk):
    wallet = FakeWallet()
    boot = CapabilityBootstrapper(transport=wallet, importer=module_importer(sdk_module))
    states = []
    boot.state_changed.connect(states.append)

    instance = await boot.boot()

    assert boot.resolution.source is FactorySource.INLINE
    assert sdk.initialized
    assert instance.network_config["network"] is wallet
    assert instance.network_config["relayerUrl"] == "https://relayer.example"
    assert states == [BootState.LOADING, BootState.READY]


@pytest.mark.asyncio
async def test_inline_default_export_is_accepted(sdk):
    module = SimpleNamespace(default=sdk)
    boot = CapabilityBootstrapper(importer=module_importer(module))

    await boot.boot()
    assert boot.resolution.source is FactorySource.INLINE
    assert boot.ready


@pytest.mark.asyncio
async def test_incomplete_module_falls_through_to_installed_global(sdk):
    incomplete = SimpleNamespace(initialize=lambda: None)
    runtime = HostRuntime(globals={"relayerSDK": sdk})
    boot = CapabilityBootstrapper(runtime=runtime, importer=module_importer(incomplete))

    await boot.boot()

    assert boot.resolution.source is FactorySource.GLOBAL
    assert len(sdk.created) == 1


@pytest.mark.asyncio
async def test_missing_module_injects_remote_script():
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, text=SDK_SCRIPT)

    runtime = script_runtime(handler, wallet=FakeWallet())
    boot = CapabilityBootstrapper(config=pinned(SDK_SCRIPT), runtime=runtime, importer=missing_module_importer)

    instance = await boot.boot()

    assert requested == [SCRIPT_URL]
    assert boot.resolution.source is FactorySource.GLOBAL
    assert runtime.get_global("relayerSDK").initialized is True
    assert instance.config["chainId"] == 11155111
    assert instance.config["network"] is runtime.wallet


@pytest.mark.asyncio
async def test_script_load_failure_is_terminal_boot_error():
    runtime = script_runtime(lambda request: httpx.Response(404))
    boot = CapabilityBootstrapper(
        config=pinned(SDK_SCRIPT),
        runtime=runtime,
        importer=missing_module_importer,
    )

    with pytest.raises(BootError) as exc:
        await boot.boot()

    assert isinstance(exc.value.__cause__, ScriptLoadError)
    assert boot.state is BootState.ERROR

    # No automatic retry: the stored error comes back
    with pytest.raises(BootError) as again:
        await boot.boot()
    assert again.value is exc.value


@pytest.mark.asyncio
async def test_script_that_raises_is_a_load_error():
    body = "raise RuntimeError('bad bundle')"
    runtime = script_runtime(lambda request: httpx.Response(200, text=body))
    boot = CapabilityBootstrapper(config=pinned(body), runtime=runtime, importer=missing_module_importer)

    with pytest.raises(BootError) as exc:
        await boot.boot()
    assert isinstance(exc.value.__cause__, ScriptLoadError)
    assert "bad bundle" in exc.value.message


@pytest.mark.asyncio
async def test_tampered_script_is_never_executed():
    tampered = SDK_SCRIPT + "\nEXECUTED = True\n"
    runtime = script_runtime(lambda request: httpx.Response(200, text=tampered))
    boot = CapabilityBootstrapper(config=pinned(SDK_SCRIPT), runtime=runtime, importer=missing_module_importer)

    with pytest.raises(BootError) as exc:
        await boot.boot()

    assert isinstance(exc.value.__cause__, ScriptLoadError)
    assert "integrity" in exc.value.message
    assert runtime.get_global("relayerSDK") is None
    assert boot.state is BootState.ERROR


@pytest.mark.asyncio
async def test_unpinned_script_is_not_fetched():
    requested = []

    def handler(request):
        requested.append(request.url)
        return httpx.Response(200, text=SDK_SCRIPT)

    runtime = script_runtime(handler)
    boot = CapabilityBootstrapper(
        config=CapabilityConfig(script_url=SCRIPT_URL),
        runtime=runtime,
        importer=missing_module_importer,
    )

    with pytest.raises(BootError) as exc:
        await boot.boot()
    assert isinstance(exc.value.__cause__, ScriptLoadError)
    assert requested == []


@pytest.mark.asyncio
async def test_runtime_from_config_applies_script_timeout():
    runtime = HostRuntime.from_config(CapabilityConfig(script_timeout=7.5))

    assert runtime.script_loader.timeout == 7.5
    assert runtime.script_loader.client.timeout.read == 7.5
    assert runtime.script_loader.client.timeout.connect == 7.5
    await runtime.script_loader.aclose()


@pytest.mark.asyncio
async def test_no_runtime_means_environment_unsupported():
    boot = CapabilityBootstrapper(importer=missing_module_importer)

    with pytest.raises(EnvironmentUnsupportedError):
        await boot.boot()
    assert boot.state is BootState.ERROR


@pytest.mark.asyncio
async def test_global_without_entry_points_fails_boot():
    runtime = HostRuntime(globals={"relayerSDK": SimpleNamespace(initialize=lambda: None)})
    boot = CapabilityBootstrapper(runtime=runtime, importer=missing_module_importer)

    with pytest.raises(BootError) as exc:
        await boot.boot()
    assert "create_instance" in exc.value.message


@pytest.mark.asyncio
async def test_create_instance_failure_carries_message():
    class ExplodingSdk(FakeSdk):
        def create_instance(self, network_config):
            raise RuntimeError("relayer unreachable")

    boot = CapabilityBootstrapper(importer=module_importer(ExplodingSdk()))

    with pytest.raises(BootError) as exc:
        await boot.boot()
    assert exc.value.message == "relayer unreachable"
    assert isinstance(exc.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_concurrent_boots_create_one_instance(sdk):
    boot = CapabilityBootstrapper(importer=module_importer(sdk))

    first, second = await asyncio.gather(boot.boot(), boot.boot())

    assert first is second
    assert len(sdk.created) == 1
