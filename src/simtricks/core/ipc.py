"""
One-way channels between a plugin pipeline and its controller.

Each channel is an unbounded queue with a single sending and a single
receiving end. Closing the receiver is how the controller tells a pipeline
it no longer cares: the next send fails with ChannelClosed.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from queue import Empty, Queue
from typing import Generic, List, Optional, Tuple, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised when sending to a channel whose receiver has gone away."""


class _ChannelState:
    def __init__(self):
        self.queue: Queue = Queue()
        self.lock = threading.Lock()
        self.receiver_closed = False
        self.sender_closed = False


class Sender(Generic[T]):
    """Sending end of a channel. Never blocks."""

    def __init__(self, state: _ChannelState):
        self._state = state

    def send(self, item: T) -> None:
        if item is None:
            raise ValueError("Cannot send None over a channel")
        with self._state.lock:
            if self._state.receiver_closed:
                raise ChannelClosed("Receiver has been closed")
            self._state.queue.put_nowait(item)

    def close(self) -> None:
        with self._state.lock:
            self._state.sender_closed = True

    @property
    def closed(self) -> bool:
        return self._state.receiver_closed


class Receiver(Generic[T]):
    """Receiving end of a channel."""

    def __init__(self, state: _ChannelState):
        self._state = state

    def try_recv(self) -> Optional[T]:
        """Receive an item if one is waiting."""
        try:
            return self._state.queue.get_nowait()
        except Empty:
            return None

    def recv(self, timeout: Optional[float] = None) -> Optional[T]:
        """Wait up to `timeout` seconds for an item."""
        try:
            return self._state.queue.get(timeout=timeout)
        except Empty:
            return None

    def drain(self) -> List[T]:
        """Receive every item currently waiting, in order."""
        items = []
        while True:
            item = self.try_recv()
            if item is None:
                return items
            items.append(item)

    def close(self) -> None:
        with self._state.lock:
            self._state.receiver_closed = True

    @property
    def disconnected(self) -> bool:
        """True once the sender is closed and nothing is left to receive."""
        return self._state.sender_closed and self._state.queue.empty()

    def __len__(self) -> int:
        return self._state.queue.qsize()

    def __del__(self):
        # Dropping the receiver disconnects the channel
        self._state.receiver_closed = True


def channel() -> Tuple[Sender, Receiver]:
    """Create a connected (sender, receiver) pair."""
    state = _ChannelState()
    return Sender(state), Receiver(state)


@dataclass
class LogLine:
    """A human-readable line for the controller's log view."""

    level: int
    message: str
    source: str = "host"
    timestamp: float = field(default_factory=time.time)

    @property
    def level_name(self) -> str:
        return logging.getLevelName(self.level)

    def __str__(self) -> str:
        return f"[{self.level_name}] {self.message}"


@dataclass
class PipelineSenders:
    """Sending ends owned by a running pipeline."""

    frames: Sender
    logs: Sender
    done: Sender

    def log(self, level: int, message: str, source: str = "host") -> bool:
        """Send a log line. Returns False if nobody is listening anymore."""
        try:
            self.logs.send(LogLine(level=level, message=message, source=source))
            return True
        except ChannelClosed:
            return False

    def close(self) -> None:
        self.frames.close()
        self.logs.close()
        self.done.close()


@dataclass
class PipelineChannels:
    """Receiving ends owned by the controller."""

    frames: Receiver
    logs: Receiver
    done: Receiver

    def close(self) -> None:
        """Drop all receivers; the pipeline stops on its next frame send."""
        self.frames.close()
        self.logs.close()
        self.done.close()


def pipeline_channels() -> Tuple[PipelineSenders, PipelineChannels]:
    """Create the frame, log and done channels for one pipeline run."""
    frame_tx, frame_rx = channel()
    log_tx, log_rx = channel()
    done_tx, done_rx = channel()
    return (
        PipelineSenders(frames=frame_tx, logs=log_tx, done=done_tx),
        PipelineChannels(frames=frame_rx, logs=log_rx, done=done_rx),
    )
