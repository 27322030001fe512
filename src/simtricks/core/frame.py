"""
Frame wire format.

A plugin's update() returns UTF-8 JSON that is either the literal `null`
(the plugin is finished) or a height x width grid of 4-byte cells:

    [[[b0, b1, b2, b3], ...], ...]

Decoded frames are numpy arrays of shape (height, width, 4), dtype uint8.
"""

import json
from typing import Any, List, Optional

import numpy as np

from .config import MatrixConfiguration
from .errors import CallError, CallErrorKind, ProtocolError, ProtocolErrorKind

CELL_SIZE = 4

Frame = np.ndarray


def _is_byte(value: Any) -> bool:
    # bool is an int subclass; true/false are not colour values
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 255


def _validate_grid(grid: Any, width: int, height: int) -> None:
    if not isinstance(grid, list) or len(grid) != height:
        raise ProtocolError(
            ProtocolErrorKind.UNEXPECTED_SHAPE,
            f"expected {height} rows",
        )
    for y, row in enumerate(grid):
        if not isinstance(row, list) or len(row) != width:
            raise ProtocolError(
                ProtocolErrorKind.UNEXPECTED_SHAPE,
                f"row {y}: expected {width} cells",
            )
        for x, cell in enumerate(row):
            if (
                not isinstance(cell, list)
                or len(cell) != CELL_SIZE
                or not all(_is_byte(v) for v in cell)
            ):
                raise ProtocolError(
                    ProtocolErrorKind.UNEXPECTED_SHAPE,
                    f"cell ({x}, {y}): expected {CELL_SIZE} values in 0-255",
                )


def decode_update(payload: bytes, config: MatrixConfiguration) -> Optional[Frame]:
    """
    Decode the bytes returned by update().

    Returns None when the plugin signalled completion, otherwise a new
    frame array owned by the caller.
    """
    try:
        text = bytes(payload).decode("utf-8")
    except UnicodeDecodeError as e:
        raise CallError(CallErrorKind.ENCODING_INVALID, str(e)) from e

    try:
        value = json.loads(text)
    except ValueError as e:
        raise ProtocolError(ProtocolErrorKind.MALFORMED_JSON, str(e)) from e

    if value is None:
        return None

    _validate_grid(value, config.width, config.height)
    return np.array(value, dtype=np.uint8).reshape(config.height, config.width, CELL_SIZE)


def encode_frame(frame: Frame) -> bytes:
    """Encode a frame the way a plugin would return it."""
    grid: List = np.asarray(frame, dtype=np.uint8).tolist()
    return json.dumps(grid, separators=(",", ":")).encode("utf-8")


def blank_frame(width: int, height: int) -> Frame:
    return np.zeros((height, width, CELL_SIZE), dtype=np.uint8)
