"""
Frame pipeline for Simtricks.

Owns one plugin instance on a dedicated thread, calls update() at the
target rate, decodes each returned frame and hands it to the controller
over the frame channel.

Lifecycle:
    LOADING -> SETTING_UP -> RUNNING -> HALTED | ERRORED

Load failure is terminal. Configuration and setup failures are logged and
the plugin is still asked for frames. Any failure in the update cycle
stops the pipeline for good. A `null` update means the plugin is finished.
Every run ends with exactly one done signal.
"""

import logging
import threading
import time
from enum import Enum, auto
from typing import Callable, Optional, Tuple

from .bridge import HostFunctionBridge
from .config import MatrixConfiguration, SandboxPolicy
from .errors import CallError, ConfigError, LoadError, ProtocolError
from .frame import decode_update
from .ipc import ChannelClosed, PipelineChannels, PipelineSenders, pipeline_channels
from .runtime import Plugin, PluginRuntime, PluginSource

log = logging.getLogger(__name__)

# (source, policy, bridge) -> loaded plugin
PluginLoader = Callable[[PluginSource, SandboxPolicy, HostFunctionBridge], PluginRuntime]

# Idle sleep while waiting for a step request
PAUSED_SLEEP = 0.01


class PluginRunState(Enum):
    """Lifecycle state of one plugin run."""

    LOADING = auto()
    SETTING_UP = auto()
    RUNNING = auto()
    HALTED = auto()
    ERRORED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (PluginRunState.HALTED, PluginRunState.ERRORED)


class FramePipeline:
    """
    Paces update() calls to one plugin and streams the decoded frames.

    The pacing loop is a plain loop over a monotonic clock. After each
    update cycle the clock is reset to "now", so a slow plugin delays the
    following frames instead of causing a burst to catch up.

    Stopping is cooperative: stop() takes effect at the next loop
    iteration. An update() call in progress always runs to completion.
    """

    def __init__(
        self,
        source: PluginSource,
        config: MatrixConfiguration,
        policy: SandboxPolicy,
        senders: PipelineSenders,
        loader: PluginLoader = PluginRuntime.load,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        autoplay: bool = True,
    ):
        self.source = source
        self.config = config
        self.policy = policy
        self.senders = senders
        self._loader = loader
        self._clock = clock
        self._sleep = sleep

        self._state = PluginRunState.LOADING
        self._stop_event = threading.Event()
        self._autoplay = threading.Event()
        self._frame_requested = threading.Event()
        if autoplay:
            self._autoplay.set()

        self._thread: Optional[threading.Thread] = None
        self._done_sent = False
        self.update_count = 0

    # Controller-facing interface

    @property
    def state(self) -> PluginRunState:
        return self._state

    @property
    def autoplay(self) -> bool:
        return self._autoplay.is_set()

    @autoplay.setter
    def autoplay(self, enabled: bool) -> None:
        if enabled:
            self._autoplay.set()
        else:
            self._autoplay.clear()

    def request_frame(self) -> None:
        """Ask for one update cycle, regardless of autoplay."""
        self._frame_requested.set()

    def stop(self) -> None:
        """Ask the pipeline to exit at the next loop iteration."""
        self._stop_event.set()

    def start(self) -> None:
        """Run the pipeline on its own daemon thread."""
        if self._thread is not None:
            return

        self._thread = threading.Thread(
            target=self.run,
            name="simtricks-plugin",
            daemon=True,
        )
        self._thread.start()
        log.info(f"Started plugin pipeline for {self._describe_source()}")

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the pipeline thread. Returns True if it has exited."""
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # Pipeline thread

    def run(self) -> None:
        """Run the full plugin lifecycle on the calling thread."""
        try:
            plugin = self._load()
            if plugin is None:
                return

            self._setup(plugin)
            self._run_loop(plugin)
        except Exception as e:
            log.exception(f"Plugin pipeline crashed: {e}")
            self._set_state(PluginRunState.ERRORED)
            self.senders.log(logging.ERROR, "Plugin host failed unexpectedly. Plugin stopped.")
        finally:
            if not self._state.is_terminal:
                self._set_state(PluginRunState.HALTED)
            self._send_done()
            self.senders.close()
            log.debug(f"Plugin pipeline exited in state {self._state.name}")

    def _set_state(self, state: PluginRunState) -> None:
        log.debug(f"Plugin state {self._state.name} -> {state.name}")
        self._state = state

    def _describe_source(self) -> str:
        if isinstance(self.source, (bytes, bytearray)):
            return f"<{len(self.source)} bytes>"
        return str(self.source)

    def _send_done(self) -> None:
        if self._done_sent:
            return
        self._done_sent = True
        try:
            self.senders.done.send(True)
        except ChannelClosed:
            log.debug("Controller is gone; done signal dropped")

    def _load(self) -> Optional[Plugin]:
        self._set_state(PluginRunState.LOADING)
        bridge = HostFunctionBridge(self.senders)

        try:
            runtime = self._loader(self.source, self.policy, bridge)
        except LoadError as e:
            log.error(f"Failed to load plugin {self._describe_source()}")
            log.debug(f"Plugin load error: {e}")
            self._set_state(PluginRunState.ERRORED)
            self.senders.log(logging.ERROR, f"{e.describe()}. Plugin not started.")
            return None

        try:
            runtime.configure(self.config)
        except ConfigError as e:
            log.warning(f"Plugin configuration rejected: {e}")
            self.senders.log(logging.WARNING, f"{e.describe()}; continuing without it.")

        return runtime

    def _setup(self, plugin: Plugin) -> None:
        self._set_state(PluginRunState.SETTING_UP)
        try:
            plugin.setup(b"")
        except CallError as e:
            log.warning(f"Plugin setup failed: {e}")
            self.senders.log(logging.WARNING, "Unable to run setup function!")
        self._set_state(PluginRunState.RUNNING)

    def _should_update(self, last_update: Optional[float]) -> Tuple[bool, float]:
        """Decide whether an update is due. Returns (due, seconds until due)."""
        if self._frame_requested.is_set():
            self._frame_requested.clear()
            return True, 0.0

        if not self._autoplay.is_set():
            return False, PAUSED_SLEEP

        if last_update is None:
            return True, 0.0

        remaining = self.config.frame_interval - (self._clock() - last_update)
        return remaining <= 0, remaining

    def _run_loop(self, plugin: Plugin) -> None:
        last_update: Optional[float] = None

        while True:
            if self._stop_event.is_set():
                log.info("Plugin pipeline stop requested")
                self._set_state(PluginRunState.HALTED)
                return

            due, remaining = self._should_update(last_update)
            if not due:
                # Undershoot long waits, then close the gap exactly
                self._sleep(remaining * 0.9 if remaining > 0.001 else remaining)
                continue

            if not self._update_cycle(plugin):
                return

            last_update = self._clock()

    def _update_cycle(self, plugin: Plugin) -> bool:
        """Run one update. Returns False when the pipeline should stop."""
        self.update_count += 1

        try:
            frame = decode_update(plugin.update(b""), self.config)
        except (CallError, ProtocolError) as e:
            log.error(f"Plugin update failed: {e.describe()}")
            log.debug(f"Plugin update error: {e}")
            self._set_state(PluginRunState.ERRORED)
            self.senders.log(
                logging.ERROR,
                f"{e.describe()}. No further updates will be requested from this plugin.",
            )
            return False

        if frame is None:
            log.info("Plugin finished")
            self._set_state(PluginRunState.HALTED)
            self.senders.log(logging.INFO, "Plugin finished.")
            return False

        try:
            self.senders.frames.send(frame)
        except ChannelClosed:
            # The controller has moved on to another plugin
            log.debug("Frame receiver closed; stopping plugin pipeline")
            self._set_state(PluginRunState.HALTED)
            return False

        return True


def start_pipeline(
    source: PluginSource,
    config: MatrixConfiguration,
    policy: Optional[SandboxPolicy] = None,
    **kwargs,
) -> Tuple[FramePipeline, PipelineChannels]:
    """Start a pipeline on a new thread with fresh channels."""
    senders, channels = pipeline_channels()
    pipeline = FramePipeline(source, config, policy or SandboxPolicy(), senders, **kwargs)
    pipeline.start()
    return pipeline, channels
