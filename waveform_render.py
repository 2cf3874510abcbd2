"""Render sample sequences as black on white waveform images."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence, Union

import numpy as np
from PIL import Image

from wav_reader import AudioData

WHITE = 255
BLACK = 0

logger = logging.getLogger(__name__)


class EmptyWaveformError(ValueError):
    """Raised when there are no samples to draw."""


def amplitude_to_y(amplitude: float, height: int) -> int:
    """Map an amplitude to a row index; positive values go up, clamped to the image."""

    center_y = height // 2
    # round() sends ties to even: 0.5 -> 0, 2.5 -> 2
    y = center_y - int(round(amplitude * (height / 2.0)))
    return min(max(y, 0), height - 1)


def render_waveform(
    samples: Union[Sequence[float], np.ndarray], width: int, height: int
) -> np.ndarray:
    """Draw the min/max envelope of ``samples`` into a ``height x width`` buffer.

    Each column covers ``len(samples) // width`` samples (at least one) and gets
    a vertical stroke spanning the smallest and largest value in its bucket.
    Columns past the end of the data stay blank.
    """

    if width < 1 or height < 1:
        raise ValueError(f"Invalid image size: {width}x{height}")
    data = np.asarray(samples, dtype=np.float64)
    if data.size == 0:
        raise EmptyWaveformError("no audio samples to process")

    pixels = np.full((height, width), WHITE, dtype=np.uint8)
    step = max(1, len(data) // width)

    for x in range(width):
        seg = data[x * step:(x + 1) * step]
        if len(seg) == 0:
            continue
        vmin, vmax = np.min(seg), np.max(seg)
        y1 = amplitude_to_y(vmax, height)
        y2 = amplitude_to_y(vmin, height)
        if y1 > y2:
            y1, y2 = y2, y1
        pixels[y1:y2 + 1, x] = BLACK

    return pixels


def render_channel(audio: AudioData, channel: str, width: int, height: int) -> np.ndarray:
    """Render the ``left`` or ``right`` channel of decoded audio."""

    return render_waveform(audio.channel(channel), width, height)


def save_waveform(pixels: np.ndarray, png_path: Union[str, Path]) -> Path:
    """Encode a pixel buffer as PNG."""

    png_path = Path(png_path)
    img = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
    img.save(png_path, "PNG")
    logger.debug("Wrote %s (%dx%d)", png_path, img.width, img.height)
    return png_path
