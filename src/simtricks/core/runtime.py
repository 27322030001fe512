"""
Plugin runtime for Simtricks.

Plugins are WebAssembly modules run inside an Extism sandbox. Network
access is limited to the policy's allowed hosts and the filesystem to its
path mappings. Configuration is delivered through the sandbox's key/value
config store; `setup` is then called with an empty argument.
"""

import base64
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

import extism

from .bridge import HOST_FUNCTIONS, HostFunctionBridge
from .config import MatrixConfiguration, SandboxPolicy
from .errors import (
    CallError,
    CallErrorKind,
    ConfigError,
    ConfigErrorKind,
    LoadError,
    LoadErrorKind,
)

log = logging.getLogger(__name__)

PluginSource = Union[str, bytes, os.PathLike]

# (manifest, config, host functions) -> sandbox instance
SandboxFactory = Callable[[Dict[str, Any], Optional[Dict[str, str]], List[Any]], "SandboxInstance"]


class SandboxInstance(Protocol):
    """What the runtime needs from an instantiated sandbox."""

    def function_exists(self, name: str) -> bool: ...

    def call(self, name: str, data: bytes, host_context: Any = None) -> bytes: ...


class Plugin(Protocol):
    """Capability interface of a loaded plugin."""

    def setup(self, data: bytes = b"") -> bytes: ...

    def update(self, data: bytes = b"") -> bytes: ...


class ExtismInstance:
    """Adapts an extism.Plugin to the sandbox instance interface."""

    def __init__(self, plugin: "extism.Plugin"):
        self._plugin = plugin

    def function_exists(self, name: str) -> bool:
        return self._plugin.function_exists(name)

    def call(self, name: str, data: bytes, host_context: Any = None) -> bytes:
        return self._plugin.call(name, data, parse=bytes, host_context=host_context)


def extism_factory(
    manifest: Dict[str, Any],
    config: Optional[Dict[str, str]],
    functions: List[Any],
) -> ExtismInstance:
    """Instantiate a WASI-enabled Extism plugin."""
    plugin = extism.Plugin(manifest, wasi=True, config=config, functions=functions)
    return ExtismInstance(plugin)


def read_plugin(source: PluginSource) -> bytes:
    """Read plugin bytecode from a path, or pass raw bytes through."""
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    try:
        with open(source, "rb") as f:
            return f.read()
    except OSError as e:
        raise LoadError(LoadErrorKind.UNREADABLE, f"{source}: {e}") from e


def build_manifest(wasm: bytes, policy: SandboxPolicy) -> Dict[str, Any]:
    """Extism manifest granting exactly the policy's capabilities."""
    return {
        "wasm": [{"data": base64.b64encode(wasm).decode("ascii")}],
        "allowed_hosts": sorted(policy.allowed_hosts),
        "allowed_paths": policy.allowed_paths(),
    }


class PluginRuntime:
    """
    One sandboxed plugin instance.

    Implements the plugin capability interface: setup(bytes) -> bytes and
    update(bytes) -> bytes. Entry points are looked up by name on each call.
    The logging host functions are always registered; calls made while a
    bridge is attached have their log output routed through it.
    """

    def __init__(
        self,
        manifest: Dict[str, Any],
        instance: "SandboxInstance",
        functions: List[Any],
        factory: SandboxFactory = extism_factory,
        bridge: Optional[HostFunctionBridge] = None,
    ):
        self.manifest = manifest
        self._instance = instance
        self._functions = functions
        self._factory = factory
        self.bridge = bridge
        self.config: Optional[Dict[str, str]] = None

    @classmethod
    def load(
        cls,
        source: PluginSource,
        policy: SandboxPolicy,
        bridge: Optional[HostFunctionBridge] = None,
        factory: SandboxFactory = extism_factory,
    ) -> "PluginRuntime":
        """
        Load plugin bytecode and instantiate it under the given policy.

        Raises:
            LoadError: UNREADABLE if the bytes cannot be read, INVALID if the
                module fails validation or instantiation.
        """
        wasm = read_plugin(source)

        try:
            manifest = build_manifest(wasm, policy)
            functions = list(HOST_FUNCTIONS)
            instance = factory(manifest, None, functions)
        except Exception as e:
            raise LoadError(LoadErrorKind.INVALID, str(e)) from e

        log.debug(
            f"Loaded plugin ({len(wasm)} bytes, {len(policy.allowed_hosts)} allowed hosts, "
            f"{len(policy.path_mappings)} mapped paths)"
        )
        return cls(manifest, instance, functions, factory=factory, bridge=bridge)

    def configure(self, config: MatrixConfiguration) -> None:
        """
        Inject the matrix configuration into the sandbox's config store.

        The sandbox is re-instantiated with the configuration applied. On
        failure the previous instance is kept.

        Raises:
            ConfigError: REJECTED if the sandbox refuses the configuration.
        """
        values = config.to_plugin_config()
        try:
            instance = self._factory(self.manifest, values, self._functions)
        except Exception as e:
            raise ConfigError(ConfigErrorKind.REJECTED, str(e)) from e

        self._instance = instance
        self.config = values

    def has_entry_point(self, name: str) -> bool:
        try:
            return bool(self._instance.function_exists(name))
        except Exception as e:
            log.debug(f"Unable to check for entry point '{name}': {e}")
            return False

    def call(self, entry_point: str, data: bytes = b"") -> bytes:
        """
        Call an exported function with one byte string and return its output.

        Raises:
            CallError: MISSING if the export does not exist, TRAP if the
                plugin faulted.
        """
        if not self.has_entry_point(entry_point):
            raise CallError(CallErrorKind.MISSING, entry_point)

        try:
            output = self._instance.call(entry_point, data, host_context=self.bridge)
        except Exception as e:
            raise CallError(CallErrorKind.TRAP, f"{entry_point}: {e}") from e

        return bytes(output) if output is not None else b""

    def setup(self, data: bytes = b"") -> bytes:
        return self.call("setup", data)

    def update(self, data: bytes = b"") -> bytes:
        return self.call("update", data)
