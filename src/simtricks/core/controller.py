"""
Simtricks controller.

Owns the receiving ends of the active pipeline's channels and folds what
arrives into application state: the latest frame, a bounded log history
and whether a plugin is still active. Never blocks on the pipeline and
never raises because a plugin misbehaved.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional

from .config import MatrixConfiguration, SandboxPolicy
from .display import FrameBuffer
from .ipc import LogLine, PipelineChannels, pipeline_channels
from .pipeline import FramePipeline, PluginLoader
from .runtime import PluginRuntime, PluginSource

log = logging.getLogger(__name__)

MAX_LOG_LINES = 1000


class Controller:
    """
    Starts and replaces plugin pipelines and collects their output.

    Responsibilities:
    - Start, restart and stop the pipeline for one plugin slot
    - Drain frame, log and done channels without blocking
    - Play/pause and single-step the plugin
    """

    def __init__(
        self,
        source: PluginSource,
        config: Optional[MatrixConfiguration] = None,
        policy: Optional[SandboxPolicy] = None,
        loader: PluginLoader = PluginRuntime.load,
        autoplay: bool = True,
    ):
        self.source = source
        self.config = config or MatrixConfiguration()
        self.policy = policy or SandboxPolicy()
        self._loader = loader
        self._autoplay = autoplay

        self.frame = FrameBuffer.blank(self.config)
        self.frame_count = 0
        self._logs: Deque[LogLine] = deque(maxlen=MAX_LOG_LINES)
        self._logs_lock = threading.Lock()

        self._pipeline: Optional[FramePipeline] = None
        self._channels: Optional[PipelineChannels] = None
        self.active = False

        self._on_frame: Optional[Callable[[FrameBuffer], None]] = None
        self._on_log: Optional[Callable[[LogLine], None]] = None

    @property
    def pipeline(self) -> Optional[FramePipeline]:
        return self._pipeline

    @property
    def autoplay(self) -> bool:
        return self._autoplay

    def on_frame(self, callback: Callable[[FrameBuffer], None]) -> None:
        """Set callback for new frames."""
        self._on_frame = callback

    def on_log(self, callback: Callable[[LogLine], None]) -> None:
        """Set callback for log lines from the pipeline."""
        self._on_log = callback

    def start(self) -> None:
        """Start a pipeline for the plugin if none is active."""
        if self.active:
            return

        log.info(f"Spawning a new plugin thread for {self.source}")
        senders, channels = pipeline_channels()
        pipeline = FramePipeline(
            self.source,
            self.config,
            self.policy,
            senders,
            loader=self._loader,
            autoplay=self._autoplay,
        )

        self._pipeline = pipeline
        self._channels = channels
        self.active = True
        pipeline.start()

    def _detach(self) -> None:
        # Old pipeline exits on its next frame send
        if self._pipeline is not None:
            self._pipeline.stop()
        if self._channels is not None:
            self._channels.close()
        self._pipeline = None
        self._channels = None
        self.active = False

    def restart(self) -> None:
        """Drop the current pipeline, clear the frame and start a fresh one."""
        log.info("Restarting plugin")
        self._detach()
        self.frame = FrameBuffer.blank(self.config)
        self.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the current pipeline and wait briefly for it to exit."""
        pipeline = self._pipeline
        if pipeline is None:
            return

        pipeline.stop()
        pipeline.join(timeout=timeout)
        if pipeline.is_alive:
            log.warning("Plugin is still busy in a call; leaving its thread behind")
        self.poll()
        self._detach()

    def toggle_autoplay(self) -> bool:
        """Play/pause the plugin. Returns the new autoplay state."""
        self._autoplay = not self._autoplay
        if self._pipeline is not None:
            self._pipeline.autoplay = self._autoplay
        return self._autoplay

    def step(self) -> None:
        """Ask for a single frame while paused."""
        if self._pipeline is not None and not self._autoplay:
            self._pipeline.request_frame()

    def poll(self) -> int:
        """
        Fold everything waiting on the channels into state.

        Returns the number of frames received.
        """
        channels = self._channels
        if channels is None:
            return 0

        # Done is the last event, so checking it first means nothing is missed
        finished = channels.done.try_recv() is not None

        for line in channels.logs.drain():
            self._add_log(line)

        received = 0
        for frame in channels.frames.drain():
            self.frame = FrameBuffer.from_frame(frame)
            self.frame_count += 1
            received += 1
            if self._on_frame:
                try:
                    self._on_frame(self.frame)
                except Exception as e:
                    log.error(f"Frame callback failed: {e}")

        if finished:
            log.info("Plugin finished running")
            self._pipeline = None
            self._channels = None
            self.active = False

        return received

    def _add_log(self, line: LogLine) -> None:
        with self._logs_lock:
            self._logs.append(line)
        if self._on_log:
            try:
                self._on_log(line)
            except Exception as e:
                log.error(f"Log callback failed: {e}")

    def get_logs(self, since_index: int = 0) -> List[LogLine]:
        with self._logs_lock:
            logs = list(self._logs)
        return logs[since_index:]

    def run(self, duration: Optional[float] = None, poll_interval: Optional[float] = None) -> None:
        """Run until the plugin finishes, `duration` elapses, or Ctrl-C."""
        poll_interval = poll_interval or self.config.frame_interval
        self.start()
        started = time.monotonic()

        try:
            while self.active:
                self.poll()
                if duration is not None and time.monotonic() - started >= duration:
                    break
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            log.info("Keyboard interrupt received")
        finally:
            self.stop()
