"""
Error taxonomy for plugin hosting.

None of these reach the controller directly; the pipeline turns them into
log lines and a done signal.
"""

from enum import Enum


class LoadErrorKind(Enum):
    UNREADABLE = "unreadable"
    INVALID = "invalid"


class ConfigErrorKind(Enum):
    REJECTED = "rejected"


class CallErrorKind(Enum):
    TRAP = "trap"
    MISSING = "missing"
    ENCODING_INVALID = "encoding_invalid"


class ProtocolErrorKind(Enum):
    MALFORMED_JSON = "malformed_json"
    UNEXPECTED_SHAPE = "unexpected_shape"


class SimtricksError(Exception):
    """Base class for plugin hosting errors."""

    MESSAGES = {}

    def __init__(self, kind: Enum, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{self.describe()} ({detail})" if detail else self.describe())

    def describe(self) -> str:
        """Category description, safe to show to the user."""
        return self.MESSAGES.get(self.kind, self.kind.value)


class LoadError(SimtricksError):
    MESSAGES = {
        LoadErrorKind.UNREADABLE: "Unable to read plugin data",
        LoadErrorKind.INVALID: "Unable to instantiate plugin",
    }


class ConfigError(SimtricksError):
    MESSAGES = {
        ConfigErrorKind.REJECTED: "Plugin rejected the matrix configuration",
    }


class CallError(SimtricksError):
    MESSAGES = {
        CallErrorKind.TRAP: "Plugin faulted while running",
        CallErrorKind.MISSING: "Plugin does not export the requested function",
        CallErrorKind.ENCODING_INVALID: "Plugin returned text that is not valid UTF-8",
    }


class ProtocolError(SimtricksError):
    MESSAGES = {
        ProtocolErrorKind.MALFORMED_JSON: "Plugin returned malformed JSON",
        ProtocolErrorKind.UNEXPECTED_SHAPE: "Plugin returned a frame with an unexpected shape",
    }
