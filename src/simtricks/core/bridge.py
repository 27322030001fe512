"""
Host functions a plugin may import to log through the host.

Every function takes a single I64 pointing at a UTF-8 string in the
plugin's own memory and returns nothing. Messages are forwarded to the
log channel and to the `simtricks.plugin` logger. Nothing a plugin sends
here can raise into the sandbox call.

The functions are registered with Extism once, at import. Each call is
routed to the bridge passed as host context by the running plugin call.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Sequence

import extism

if TYPE_CHECKING:
    from .ipc import PipelineSenders

log = logging.getLogger(__name__)
plugin_log = logging.getLogger("simtricks.plugin")

HOST_FUNCTION_LEVELS: Dict[str, int] = {
    "debug_log": logging.DEBUG,
    "info_log": logging.INFO,
    "warn_log": logging.WARNING,
    "error_log": logging.ERROR,
}


class HostFunctionBridge:
    """Routes plugin log calls to the pipeline's log channel."""

    def __init__(self, senders: "PipelineSenders", source: str = "plugin"):
        self.senders = senders
        self.source = source

    def forward(self, level: int, data: bytes) -> None:
        """Decode one log message and pass it on. Malformed text is dropped."""
        try:
            message = bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            log.warning(f"Dropped {logging.getLevelName(level)} log from plugin: invalid UTF-8")
            return

        plugin_log.log(level, message)
        self.senders.log(level, message, source=self.source)

    def handle(self, level: int, plugin: Any, params: Sequence[Any]) -> None:
        """Resolve the pointer argument in plugin memory and forward it."""
        try:
            data = plugin.input_bytes(params[0])
        except Exception as e:
            log.warning(f"Unable to read {logging.getLevelName(level)} log from plugin memory: {e}")
            return

        # Unknown offsets resolve to an empty block
        if not data:
            log.warning(f"Plugin passed an empty or invalid {logging.getLevelName(level)} log")
            return

        self.forward(level, data)


def _dispatch(level: int):
    def host_fn(current_plugin, params, results, *user_data):
        try:
            bridge = current_plugin.host_context()
        except Exception as e:
            log.warning(f"Unable to resolve host context for plugin log: {e}")
            return

        if not isinstance(bridge, HostFunctionBridge):
            log.debug(f"Plugin {logging.getLevelName(level)} log dropped: no bridge attached")
            return

        bridge.handle(level, current_plugin, params)

    return host_fn


HOST_FUNCTIONS: List[extism.Function] = [
    extism.host_fn(name=name, signature=([extism.ValType.I64], []))(_dispatch(level))
    for name, level in HOST_FUNCTION_LEVELS.items()
]
