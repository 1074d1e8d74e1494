"""
Tests for the process-wide cryptosystem bootstrapper.

Run with:
    pytest tests/test_runtime.py -v
"""
import asyncio

import pytest

from plantchain.lib.errors import LoadError
from plantchain.lib.runtime import RuntimeBootstrapper


class FakeRuntime:
    def __init__(self):
        self.default_config = {"chainId": 11155111}
        self.init_calls = 0

    async def init_sdk(self):
        self.init_calls += 1
        await asyncio.sleep(0)

    async def create_instance(self, config):
        return config


class CountingLoader:
    """Loader that yields to the event loop before returning, so callers overlap."""

    def __init__(self, failures: int = 0, error: Exception = None):
        self.calls = 0
        self.failures = failures
        self.error = error or LoadError("asset unreachable")
        self.runtime = FakeRuntime()

    async def __call__(self):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.calls <= self.failures:
            raise self.error
        return self.runtime


class TestEnsureLoaded:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self):
        """N concurrent ensure_loaded() calls trigger exactly one fetch."""
        loader = CountingLoader()
        bootstrapper = RuntimeBootstrapper(loader)

        results = await asyncio.gather(*[bootstrapper.ensure_loaded() for _ in range(10)])

        assert loader.calls == 1, "Runtime should be fetched once"
        assert len(results) == 10
        assert all(r is loader.runtime for r in results), "Every caller gets the same handle"

    @pytest.mark.asyncio
    async def test_loaded_runtime_is_reused(self):
        loader = CountingLoader()
        bootstrapper = RuntimeBootstrapper(loader)

        first = await bootstrapper.ensure_loaded()
        second = await bootstrapper.ensure_loaded()

        assert first is second
        assert loader.calls == 1
        assert bootstrapper.loaded

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self):
        loader = CountingLoader(failures=1)
        bootstrapper = RuntimeBootstrapper(loader)

        results = await asyncio.gather(
            *[bootstrapper.ensure_loaded() for _ in range(3)],
            return_exceptions=True,
        )

        assert loader.calls == 1
        assert all(isinstance(r, LoadError) for r in results)
        assert not bootstrapper.loaded

    @pytest.mark.asyncio
    async def test_failed_load_can_be_retried_manually(self):
        """No automatic retry, but a later explicit call fetches again."""
        loader = CountingLoader(failures=1)
        bootstrapper = RuntimeBootstrapper(loader)

        with pytest.raises(LoadError):
            await bootstrapper.ensure_loaded()
        assert loader.calls == 1, "Failed load must not be retried internally"

        runtime = await bootstrapper.ensure_loaded()
        assert runtime is loader.runtime
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_foreign_errors_become_load_errors(self):
        loader = CountingLoader(failures=1, error=ConnectionError("dns failure"))
        bootstrapper = RuntimeBootstrapper(loader)

        with pytest.raises(LoadError) as excinfo:
            await bootstrapper.ensure_loaded()

        assert isinstance(excinfo.value.__cause__, ConnectionError)


class TestEnsureInitialized:

    @pytest.mark.asyncio
    async def test_init_runs_once_under_concurrency(self):
        loader = CountingLoader()
        bootstrapper = RuntimeBootstrapper(loader)

        await asyncio.gather(*[bootstrapper.ensure_initialized() for _ in range(5)])
        await bootstrapper.ensure_initialized()

        assert loader.runtime.init_calls == 1, "init_sdk must never run twice"
        assert bootstrapper.initialized

    @pytest.mark.asyncio
    async def test_init_failure_is_load_error(self):
        loader = CountingLoader()

        async def broken_init():
            raise RuntimeError("wasm trap")

        loader.runtime.init_sdk = broken_init
        bootstrapper = RuntimeBootstrapper(loader)

        with pytest.raises(LoadError):
            await bootstrapper.ensure_initialized()
        assert not bootstrapper.initialized
        assert bootstrapper.loaded, "Load succeeded, only init failed"

    @pytest.mark.asyncio
    async def test_reset_forgets_everything(self):
        loader = CountingLoader()
        bootstrapper = RuntimeBootstrapper(loader)
        await bootstrapper.ensure_initialized()

        bootstrapper.reset()

        assert not bootstrapper.loaded
        assert not bootstrapper.initialized
        await bootstrapper.ensure_initialized()
        assert loader.calls == 2
