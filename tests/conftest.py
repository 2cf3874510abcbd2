from __future__ import annotations

import struct
from pathlib import Path
from typing import Optional, Sequence

import pytest

from wav_reader import HEADER_FORMAT


def wav_bytes(
    samples: Sequence[int],
    num_channels: int = 2,
    sample_rate: int = 44_100,
    bits_per_sample: int = 16,
    subchunk2_size: Optional[int] = None,
    chunk_id: bytes = b"RIFF",
    wave_format: bytes = b"WAVE",
) -> bytes:
    """Build a canonical WAV file from interleaved int16 samples."""

    payload = struct.pack(f"<{len(samples)}h", *samples)
    if subchunk2_size is None:
        subchunk2_size = len(payload)
    block_align = num_channels * bits_per_sample // 8
    header = struct.pack(
        HEADER_FORMAT,
        chunk_id,
        36 + len(payload),
        wave_format,
        b"fmt ",
        16,
        1,
        num_channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        bits_per_sample,
        b"data",
        subchunk2_size,
    )
    return header + payload


@pytest.fixture
def write_wav(tmp_path: Path):
    def _write(name: str, samples: Sequence[int], **kwargs) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(wav_bytes(samples, **kwargs))
        return path

    return _write
