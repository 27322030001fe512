"""
Configuration for Simtricks.

Matrix configuration handed to plugins, the sandbox capability policy,
and environment-based defaults.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)


class ColorOrder(str, Enum):
    """Byte order of a 4-byte frame cell."""

    RGBA = "rgba"
    BGRA = "bgra"


class EnvSettings(BaseSettings):
    """Environment-based defaults loaded from SIMTRICKS_* variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="SIMTRICKS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    width: int = 12
    height: int = 12
    fps: float = 30.0
    serpentine: bool = True
    brightness: int = 255
    magnification: float = 1.0
    color_order: ColorOrder = ColorOrder.BGRA
    log_level: str = "INFO"


def load_env_settings() -> EnvSettings:
    """Load env settings, falling back to defaults if the environment is invalid."""
    try:
        return EnvSettings()
    except Exception as e:
        log.warning(f"Ignoring invalid environment settings: {e}")
        return EnvSettings.model_construct()


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class MatrixConfiguration:
    """
    Matrix description handed to a plugin.

    Immutable: a running pipeline keeps the configuration it was started
    with. Change a setting by starting a new pipeline.
    """

    width: int = 12
    height: int = 12
    target_rate: float = 30.0
    serpentine: bool = True
    brightness: int = 255
    magnification: float = 1.0

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Matrix dimensions must be positive, got {self.width}x{self.height}")
        if not math.isfinite(self.target_rate) or self.target_rate <= 0:
            raise ValueError(f"Target rate must be a positive number, got {self.target_rate}")
        if not 0 <= self.brightness <= 255:
            raise ValueError(f"Brightness must be within 0-255, got {self.brightness}")
        if not self.magnification > 0:
            raise ValueError(f"Magnification must be positive, got {self.magnification}")

    @classmethod
    def from_settings(cls, settings: EnvSettings) -> "MatrixConfiguration":
        return cls(
            width=settings.width,
            height=settings.height,
            target_rate=settings.fps,
            serpentine=settings.serpentine,
            brightness=settings.brightness,
            magnification=settings.magnification,
        )

    @property
    def frame_interval(self) -> float:
        """Minimum spacing between update calls, in seconds."""
        return 1.0 / self.target_rate

    @property
    def led_count(self) -> int:
        return self.width * self.height

    def to_plugin_config(self) -> Dict[str, str]:
        """Stringified key/value form injected into the sandbox."""
        return {
            "width": str(self.width),
            "height": str(self.height),
            "target_fps": _format_number(self.target_rate),
            "serpentine": "true" if self.serpentine else "false",
            "brightness": str(self.brightness),
            "magnification": _format_number(self.magnification),
        }


def parse_path_mapping(value: str) -> Tuple[str, str]:
    """
    Parse a "LOCAL>PLUGIN" path mapping.

    A value without a '>' maps the local path to the same path inside the sandbox.
    """
    local, sep, plugin = value.partition(">")
    if not sep:
        return value, value
    return local, plugin


@dataclass(frozen=True)
class SandboxPolicy:
    """
    Capabilities granted to a plugin.

    Hosts and paths are not checked for reachability or existence here;
    failures surface as I/O errors inside the sandbox.
    """

    allowed_hosts: FrozenSet[str] = field(default_factory=frozenset)
    path_mappings: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "allowed_hosts", frozenset(self.allowed_hosts))
        object.__setattr__(
            self, "path_mappings", tuple((str(h), str(s)) for h, s in self.path_mappings)
        )

        for host in self.allowed_hosts:
            if not host:
                raise ValueError("Allowed host names must not be empty")
        for host_path, sandbox_path in self.path_mappings:
            if not host_path or not sandbox_path:
                raise ValueError("Mapped paths must not be empty")

    @classmethod
    def from_args(
        cls,
        hosts: Optional[Iterable[str]] = None,
        mappings: Optional[Iterable[str]] = None,
    ) -> "SandboxPolicy":
        """Build a policy from host names and "LOCAL>PLUGIN" mapping strings."""
        return cls(
            allowed_hosts=frozenset(hosts or ()),
            path_mappings=tuple(parse_path_mapping(m) for m in mappings or ()),
        )

    def allowed_paths(self) -> Dict[str, str]:
        """Host path to sandbox path mapping, in declaration order."""
        return {host_path: sandbox_path for host_path, sandbox_path in self.path_mappings}
