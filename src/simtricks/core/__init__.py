"""
Simtricks Core - Plugin runtime, frame pipeline, channels and controller.
"""

from .bridge import HostFunctionBridge
from .config import ColorOrder, EnvSettings, MatrixConfiguration, SandboxPolicy
from .controller import Controller
from .display import FrameBuffer
from .errors import CallError, ConfigError, LoadError, ProtocolError, SimtricksError
from .ipc import ChannelClosed, LogLine, PipelineChannels, PipelineSenders, pipeline_channels
from .pipeline import FramePipeline, PluginRunState, start_pipeline
from .runtime import PluginRuntime

__all__ = [
    "Controller",
    "FramePipeline",
    "PluginRunState",
    "start_pipeline",
    "PluginRuntime",
    "HostFunctionBridge",
    "MatrixConfiguration",
    "SandboxPolicy",
    "ColorOrder",
    "EnvSettings",
    "FrameBuffer",
    "ChannelClosed",
    "LogLine",
    "PipelineChannels",
    "PipelineSenders",
    "pipeline_channels",
    "SimtricksError",
    "LoadError",
    "ConfigError",
    "CallError",
    "ProtocolError",
]
