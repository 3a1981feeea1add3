"""Tests for the shared source contract helpers."""

import asyncio
import threading

import pytest

from constants import SourceKind
from registry.errors import SearchCancelledError, UnsupportedRangeError
from registry.nuget.local import LocalPackageSource
from registry.nuget.v2 import V2PackageSource
from registry.package import PackageIdentifier
from registry.source import (
    CancellationToken,
    PackageSource,
    SourceConfig,
    create_source,
    require_exact_version,
    run_cancellable,
)


class TestCreateSource:
    """Test strategy selection by path."""

    @pytest.mark.parametrize("path", ["https://www.nuget.org/api/v2/", "HTTP://feed.example.test/nuget"])
    def test_remote_paths(self, path):
        """Test http(s) paths create remote sources."""
        source = create_source("feed", path, user_name="alice", password="pw")

        assert isinstance(source, V2PackageSource)
        assert source.user_name == "alice"
        assert source.config.kind is SourceKind.V2

    def test_local_path(self, tmp_path):
        """Test other paths create local sources."""
        source = create_source("local", "packages", base_directory=str(tmp_path), is_enabled=False)

        assert isinstance(source, LocalPackageSource)
        assert not source.is_enabled
        assert source.config.kind is SourceKind.LOCAL
        assert source.expanded_path == str(tmp_path / "packages")

    def test_both_strategies_satisfy_protocol(self, tmp_path):
        """Test both strategies implement PackageSource."""
        assert isinstance(create_source("a", str(tmp_path)), PackageSource)
        assert isinstance(create_source("b", "https://feed.example.test/"), PackageSource)

    def test_remote_detection_follows_environment(self, monkeypatch):
        """Test remote detection uses the expanded path."""
        config = SourceConfig(name="env", saved_path="%FEED%")
        monkeypatch.setenv("FEED", "https://feed.example.test/")
        assert config.is_remote
        monkeypatch.setenv("FEED", "/srv/packages")
        assert not config.is_remote


class TestRequireExactVersion:
    """Test the exact-version guard."""

    def test_exact(self):
        """Test the exact version is returned."""
        assert str(require_exact_version(PackageIdentifier("Foo", "1.0.0"))) == "1.0.0"

    @pytest.mark.parametrize("version", ["[1.0,2.0)", None])
    def test_rejects_ranges_and_missing_versions(self, version):
        """Test ranges and missing versions are rejected."""
        with pytest.raises(UnsupportedRangeError):
            require_exact_version(PackageIdentifier("Foo", version))


class TestCancellation:
    """Test the cancellation token and cancellable execution."""

    def test_register_and_cancel(self):
        """Test registered callbacks run once and unregistered ones never."""
        token = CancellationToken()
        calls = []
        token.register(lambda: calls.append("a"))
        unregister = token.register(lambda: calls.append("b"))
        unregister()

        token.cancel()
        token.cancel()

        assert token.cancelled
        assert calls == ["a"]

    def test_register_after_cancel_runs_immediately(self):
        """Test registering on a cancelled token runs the callback at once."""
        token = CancellationToken()
        token.cancel()
        calls = []
        token.register(lambda: calls.append("late"))
        assert calls == ["late"]
        with pytest.raises(SearchCancelledError):
            token.raise_if_cancelled()

    def test_register_racing_cancel_runs_every_callback(self):
        """Test callbacks registered while another thread cancels all run exactly once."""
        for _ in range(50):
            token = CancellationToken()
            calls = []
            start = threading.Barrier(2)

            def cancel_soon(token=token, start=start):
                start.wait()
                token.cancel()

            worker = threading.Thread(target=cancel_soon)
            worker.start()
            start.wait()
            for i in range(100):
                token.register(lambda i=i, calls=calls: calls.append(i))
            worker.join()

            assert sorted(calls) == list(range(100))

    def test_returns_result_without_token(self):
        """Test work runs to completion without a token."""
        assert asyncio.run(run_cancellable(lambda: 42)) == 42

    def test_propagates_errors(self):
        """Test errors from the work reach the caller."""
        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(run_cancellable(fail, CancellationToken()))

    def test_cancel_while_running(self):
        """Test cancelling during the work raises SearchCancelledError."""
        token = CancellationToken()
        started = threading.Event()
        release = threading.Event()

        def slow():
            started.set()
            release.wait(5)
            return "done"

        async def scenario():
            task = asyncio.ensure_future(run_cancellable(slow, token))
            await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
            token.cancel()
            try:
                return await task
            finally:
                release.set()

        with pytest.raises(SearchCancelledError):
            asyncio.run(scenario())
