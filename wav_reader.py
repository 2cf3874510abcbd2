"""Decoder for 16-bit PCM WAV files.

The reader understands the canonical 44 byte RIFF/WAVE header followed by
interleaved signed 16-bit little-endian frames. Mono and stereo files are
accepted; every other channel count or sample width is rejected.
"""
from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, NamedTuple, Union

import numpy as np

HEADER_SIZE = 44
HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"
SUPPORTED_CHANNELS = (1, 2)
SUPPORTED_BITS = 16
SAMPLE_NORM = 32767.0

WavSource = Union[str, os.PathLike, BinaryIO]

logger = logging.getLogger(__name__)


class WavError(ValueError):
    """Base class for WAV decoding failures."""


class FormatError(WavError):
    """The data is not a RIFF/WAVE container."""


class UnsupportedFormatError(WavError):
    """The container is valid but uses a channel count or sample width we do not decode."""


class EmptyAudioError(WavError):
    """The file holds no complete frame."""


class WavHeader(NamedTuple):
    chunk_id: bytes
    chunk_size: int
    format: bytes
    subchunk1_id: bytes
    subchunk1_size: int
    audio_format: int
    num_channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    subchunk2_id: bytes
    subchunk2_size: int

    @property
    def bytes_per_frame(self) -> int:
        return self.num_channels * (self.bits_per_sample // 8)


@dataclass(frozen=True)
class AudioData:
    """Normalized samples of both channels plus the sample rate."""

    left: np.ndarray
    right: np.ndarray
    sample_rate: int

    @property
    def frame_count(self) -> int:
        return len(self.left)

    @property
    def duration(self) -> float:
        if not self.sample_rate:
            return 0.0
        return self.frame_count / self.sample_rate

    def channel(self, name: str) -> np.ndarray:
        if name == "left":
            return self.left
        if name == "right":
            return self.right
        raise ValueError(f"Unknown channel: {name!r}")


def parse_header(raw: bytes) -> WavHeader:
    """Unpack and validate the fixed 44 byte header."""

    if len(raw) < HEADER_SIZE:
        raise FormatError(
            f"truncated header: expected {HEADER_SIZE} bytes, got {len(raw)}"
        )
    header = WavHeader._make(struct.unpack(HEADER_FORMAT, raw[:HEADER_SIZE]))

    if header.chunk_id != b"RIFF" or header.format != b"WAVE":
        raise FormatError("not a valid WAV file")
    if header.num_channels not in SUPPORTED_CHANNELS:
        raise UnsupportedFormatError(
            f"only mono and stereo files are supported (found {header.num_channels} channels)"
        )
    if header.bits_per_sample != SUPPORTED_BITS:
        raise UnsupportedFormatError(
            f"only 16-bit samples are supported (found {header.bits_per_sample} bits)"
        )
    return header


def reconcile_payload_size(declared: int, file_size: int) -> int:
    """Return the number of payload bytes to trust.

    Writers that stream audio often leave ``subchunk2_size`` at zero or at a
    placeholder larger than the file. In both cases the size implied by the
    file length wins.
    """

    actual = max(file_size - HEADER_SIZE, 0)
    if declared == 0 or declared > actual:
        logger.warning(
            "Header reports SubChunk2Size=%d, but actual size is %d. Using actual size.",
            declared,
            actual,
        )
        return actual
    return declared


def _stream_size(stream: BinaryIO) -> int:
    try:
        return os.fstat(stream.fileno()).st_size - stream.tell()
    except (AttributeError, OSError, ValueError):
        start = stream.tell()
        end = stream.seek(0, os.SEEK_END)
        stream.seek(start)
        return end - start


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    """Read up to ``size`` bytes, stopping early only at end of stream."""

    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def decode_frames(payload: bytes, num_channels: int) -> tuple[np.ndarray, np.ndarray]:
    """Split interleaved 16-bit frames into normalized left/right arrays.

    Trailing bytes that do not form a whole frame are dropped. Mono samples are
    copied into both channels.
    """

    bytes_per_frame = num_channels * 2
    frames = len(payload) // bytes_per_frame
    data = np.frombuffer(payload[: frames * bytes_per_frame], dtype="<i2")
    data = data.reshape(frames, num_channels).astype(np.float64) / SAMPLE_NORM

    left = np.ascontiguousarray(data[:, 0])
    if num_channels == 1:
        right = left.copy()
    else:
        right = np.ascontiguousarray(data[:, 1])
    left.flags.writeable = False
    right.flags.writeable = False
    return left, right


def read_wav_stream(stream: BinaryIO, name: str = "<stream>") -> AudioData:
    """Decode a WAV file from a binary stream positioned at its first byte."""

    file_size = _stream_size(stream)
    header = parse_header(_read_exactly(stream, HEADER_SIZE))

    logger.debug(
        "%s: sample_rate=%d channels=%d bits=%d subchunk2_size=%d block_align=%d file_size=%d",
        name,
        header.sample_rate,
        header.num_channels,
        header.bits_per_sample,
        header.subchunk2_size,
        header.block_align,
        file_size,
    )

    payload_size = reconcile_payload_size(header.subchunk2_size, file_size)
    frame_count = payload_size // header.bytes_per_frame
    payload = _read_exactly(stream, frame_count * header.bytes_per_frame)

    left, right = decode_frames(payload, header.num_channels)
    if len(left) < frame_count:
        logger.warning(
            "%s: stream ended after %d of %d frames", name, len(left), frame_count
        )
    if len(left) == 0:
        raise EmptyAudioError("no audio data found in file")

    logger.debug("%s: decoded %d frames", name, len(left))
    return AudioData(left=left, right=right, sample_rate=header.sample_rate)


def read_wav(source: WavSource) -> AudioData:
    """Decode ``source`` (a path or an open binary file) into :class:`AudioData`."""

    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        with path.open("rb") as handle:
            return read_wav_stream(handle, str(path))
    return read_wav_stream(source)
