"""Fakes shared by the Simtricks tests."""

import json
import threading
from typing import Callable, List, Optional

from simtricks.core.config import MatrixConfiguration
from simtricks.core.errors import CallError, CallErrorKind, ConfigError, ConfigErrorKind


def grid(width: int, height: int, cell=(0, 0, 0, 0)) -> bytes:
    """A JSON frame as a plugin would return it."""
    return json.dumps([[list(cell) for _ in range(width)] for _ in range(height)]).encode()


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 1e-4)


class FakePlugin:
    """
    In-process stand-in for a loaded plugin.

    `updates` is either a list of responses (bytes or exceptions) consumed
    in order, or a callable returning the next response.
    """

    def __init__(self, updates=None, setup_error: Optional[Exception] = None, on_update=None):
        self.updates = updates if updates is not None else []
        self.setup_error = setup_error
        self.on_update: Optional[Callable[["FakePlugin"], None]] = on_update
        self.setup_calls: List[bytes] = []
        self.update_calls = 0
        self.configured: Optional[MatrixConfiguration] = None
        self.config_error: Optional[Exception] = None
        self.bridge = None

    def configure(self, config: MatrixConfiguration) -> None:
        if self.config_error:
            raise self.config_error
        self.configured = config

    def setup(self, data: bytes = b"") -> bytes:
        self.setup_calls.append(data)
        if self.setup_error:
            raise self.setup_error
        return b""

    def update(self, data: bytes = b"") -> bytes:
        self.update_calls += 1
        if self.on_update:
            self.on_update(self)
        if callable(self.updates):
            response = self.updates()
        else:
            response = self.updates.pop(0) if self.updates else b"null"
        if isinstance(response, Exception):
            raise response
        return response


def loader_for(plugin: FakePlugin):
    """Loader returning the given fake plugin, recording the bridge."""

    def load(source, policy, bridge):
        plugin.bridge = bridge
        plugin.source = source
        plugin.policy = policy
        return plugin

    return load


def trap(message: str = "unreachable") -> CallError:
    return CallError(CallErrorKind.TRAP, message)


def rejected(message: str = "bad config") -> ConfigError:
    return ConfigError(ConfigErrorKind.REJECTED, message)


class FakeSandbox:
    """Stand-in for an instantiated Extism plugin."""

    def __init__(self, exports=None):
        self.exports = exports if exports is not None else {}
        self.calls: List[tuple] = []
        self.contexts: List[object] = []

    def function_exists(self, name: str) -> bool:
        return name in self.exports

    def call(self, name: str, data: bytes, host_context=None) -> bytes:
        self.calls.append((name, data))
        self.contexts.append(host_context)
        result = self.exports[name](data)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingFactory:
    """Sandbox factory recording every instantiation."""

    def __init__(self, sandbox: FakeSandbox, fail_on: Optional[Callable[[dict], bool]] = None):
        self.sandbox = sandbox
        self.fail_on = fail_on
        self.created: List[tuple] = []
        self.lock = threading.Lock()

    def __call__(self, manifest, config, functions):
        with self.lock:
            self.created.append((manifest, config, functions))
        if self.fail_on and self.fail_on(config):
            raise RuntimeError("instantiation failed")
        return self.sandbox
