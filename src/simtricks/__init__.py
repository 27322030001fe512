"""
Simtricks - A host and simulator for sandboxed LED matrix plugins.

Architecture:
    - Runtime: loads WebAssembly plugins into an Extism sandbox with an
      explicit capability policy (allowed hosts, mapped paths)
    - Pipeline: drives a plugin's update() at the target frame rate on its
      own thread and streams decoded frames, log lines and a done signal
    - Controller: owns the channel receivers and keeps the latest frame

Example:
    from simtricks.core import Controller, MatrixConfiguration, SandboxPolicy

    config = MatrixConfiguration(width=16, height=16, target_rate=30)
    controller = Controller("plugin.wasm", config, SandboxPolicy())
    controller.run(duration=10)
"""

__version__ = "0.3.0"

from .core import Controller, FramePipeline, MatrixConfiguration, PluginRuntime, SandboxPolicy

__all__ = [
    "Controller",
    "FramePipeline",
    "MatrixConfiguration",
    "PluginRuntime",
    "SandboxPolicy",
]
