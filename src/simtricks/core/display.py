"""
Display helpers for Simtricks.

Turns plugin frames into something a viewer can show: an RGB array, a
magnified PIL image, or the cell order of a physical LED strip.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image

from .config import ColorOrder, MatrixConfiguration
from .frame import CELL_SIZE, Frame, blank_frame

log = logging.getLogger(__name__)

# Indices of red, green, blue within a cell
_CHANNELS = {
    ColorOrder.RGBA: (0, 1, 2),
    ColorOrder.BGRA: (2, 1, 0),
}


@dataclass
class FrameBuffer:
    """
    The last frame received from a plugin.

    Cells are stored exactly as the plugin sent them; the colour order is
    only applied when converting for display.
    """

    width: int
    height: int
    _data: Optional[np.ndarray] = None

    def __post_init__(self):
        if self._data is None:
            self._data = blank_frame(self.width, self.height)

    @classmethod
    def blank(cls, config: MatrixConfiguration) -> "FrameBuffer":
        return cls(config.width, config.height)

    @classmethod
    def from_frame(cls, frame: Frame) -> "FrameBuffer":
        height, width, cells = frame.shape
        if cells != CELL_SIZE:
            raise ValueError(f"Frame cells must have {CELL_SIZE} bytes, got {cells}")
        return cls(width, height, np.asarray(frame, dtype=np.uint8))

    @property
    def data(self) -> np.ndarray:
        """Raw cell data as numpy array (height, width, 4)."""
        return self._data

    def get_cell(self, x: int, y: int) -> Tuple[int, int, int, int]:
        if 0 <= x < self.width and 0 <= y < self.height:
            return tuple(int(v) for v in self._data[y, x])
        return (0, 0, 0, 0)

    def to_rgb(
        self, color_order: ColorOrder = ColorOrder.BGRA, brightness: int = 255
    ) -> np.ndarray:
        """Colour array (height, width, 3), scaled by brightness (0-255)."""
        rgb = self._data[:, :, list(_CHANNELS[color_order])]
        if brightness >= 255:
            return rgb
        scaled = rgb.astype(np.uint16) * max(0, brightness) // 255
        return scaled.astype(np.uint8)

    def to_image(
        self,
        color_order: ColorOrder = ColorOrder.BGRA,
        magnification: float = 1.0,
        brightness: int = 255,
    ) -> Image.Image:
        """Render to a PIL image, one pixel per LED scaled by magnification."""
        image = Image.fromarray(self.to_rgb(color_order, brightness))
        if magnification != 1.0:
            size = (
                max(1, round(self.width * magnification)),
                max(1, round(self.height * magnification)),
            )
            image = image.resize(size, Image.Resampling.NEAREST)
        return image

    def led_sequence(self, serpentine: bool = True) -> List[Tuple[int, int, int, int]]:
        """Cells in the order a strip wired row by row would receive them."""
        cells = []
        for y in range(self.height):
            row = self._data[y]
            if serpentine and y % 2 == 1:
                row = row[::-1]
            cells.extend(tuple(int(v) for v in cell) for cell in row)
        return cells

    def copy(self) -> "FrameBuffer":
        return FrameBuffer(self.width, self.height, self._data.copy())
