"""Loading audio files (WAV, AIFF and AIFC) into sample buffers."""

from __future__ import annotations

import abc
import math
import os
import struct
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
from scipy.io import wavfile

from samplesplit.sample_buffers import SampleBuffers

MAX_INT32 = 2**31 - 1

PathLike = Union[str, os.PathLike]

_BIG_ENDIAN_PCM = (b"NONE", b"twos")
_LITTLE_ENDIAN_PCM = (b"sowt",)
_FLOAT_CODECS = {b"fl32": ">f4", b"FL32": ">f4", b"fl64": ">f8", b"FL64": ">f8"}


class SampleLoadError(Exception):
    """Raised when a sample file cannot be loaded."""


@dataclass(frozen=True)
class SampleInfo:
    """Format of a sample file: sample rate, channel count and frames per channel."""

    sample_rate: float
    num_channels: int
    num_samples: int

    def total_size(self) -> int:
        """Total number of samples across all channels."""
        return self.num_channels * self.num_samples


def _check_size(num_channels: int, num_frames: int) -> None:
    total = num_channels * num_frames
    if total > MAX_INT32:
        raise SampleLoadError(f"Input file is too big {total}")


class SampleFileLoader(abc.ABC):
    """Reads one audio file; ``create`` picks the loader able to read it."""

    @classmethod
    def create(cls, file_path: PathLike) -> "SampleFileLoader":
        """Return a loader for ``file_path``; it is invalid when no format matches."""
        wav_loader = _WavLoader(file_path)
        if wav_loader.is_valid:
            return wav_loader
        aiff_loader = _AiffLoader(file_path)
        if aiff_loader.is_valid:
            return aiff_loader
        return _InvalidLoader(wav_loader.error)

    @property
    @abc.abstractmethod
    def is_valid(self) -> bool:
        """Whether the file could be opened and its format understood."""

    @property
    @abc.abstractmethod
    def error(self) -> str:
        """Why the file could not be opened (empty when valid)."""

    @abc.abstractmethod
    def load(self) -> SampleBuffers:
        """Decode the whole file; raises ``SampleLoadError`` on failure."""

    @abc.abstractmethod
    def info(self) -> Optional[SampleInfo]:
        """The file's format, or ``None`` when the file is not valid."""


class _InvalidLoader(SampleFileLoader):
    def __init__(self, error: str):
        self._error = error

    @property
    def is_valid(self) -> bool:
        return False

    @property
    def error(self) -> str:
        return self._error

    def load(self) -> SampleBuffers:
        raise SampleLoadError(self._error)

    def info(self) -> Optional[SampleInfo]:
        return None


def _integers_to_float(data: np.ndarray) -> np.ndarray:
    kind = data.dtype.kind
    if kind == "f":
        return data.astype(np.float32)
    if kind == "u":
        half = 2 ** (8 * data.dtype.itemsize - 1)
        return ((data.astype(np.float64) - half) / half).astype(np.float32)
    return (data.astype(np.float64) / 2 ** (8 * data.dtype.itemsize - 1)).astype(np.float32)


class _WavLoader(SampleFileLoader):
    def __init__(self, file_path: PathLike):
        self._sample_rate = 0.0
        self._data: Optional[np.ndarray] = None
        self._error = ""
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", wavfile.WavFileWarning)
                rate, data = wavfile.read(os.fspath(file_path))
        except (ValueError, OSError, EOFError, struct.error, IndexError) as exc:
            self._error = str(exc) or type(exc).__name__
            return
        if data.ndim == 1:
            data = data.reshape(-1, 1)
        self._sample_rate = float(rate)
        self._data = data

    @property
    def is_valid(self) -> bool:
        return self._data is not None

    @property
    def error(self) -> str:
        return self._error

    def load(self) -> SampleBuffers:
        if self._data is None:
            raise SampleLoadError(self._error)
        num_frames, num_channels = self._data.shape
        _check_size(num_channels, num_frames)
        return SampleBuffers.from_channels(self._sample_rate, _integers_to_float(self._data).T)

    def info(self) -> Optional[SampleInfo]:
        if self._data is None:
            return None
        num_frames, num_channels = self._data.shape
        return SampleInfo(self._sample_rate, num_channels, num_frames)


def _read_extended(raw: bytes) -> float:
    """Decode an 80-bit IEEE 754 extended precision number."""
    exponent = ((raw[0] & 0x7F) << 8) | raw[1]
    mantissa = int.from_bytes(raw[2:10], "big")
    if exponent == 0 and mantissa == 0:
        return 0.0
    sign = -1.0 if raw[0] & 0x80 else 1.0
    return sign * math.ldexp(mantissa, exponent - 16383 - 63)


class _AiffLoader(SampleFileLoader):
    def __init__(self, file_path: PathLike):
        self._error = ""
        self._valid = False
        self._num_channels = 0
        self._num_frames = 0
        self._bits = 0
        self._sample_rate = 0.0
        self._compression = b"NONE"
        self._sound = b""
        try:
            raw = Path(file_path).read_bytes()
        except OSError as exc:
            self._error = str(exc)
            return
        try:
            self._parse(raw)
        except (ValueError, struct.error) as exc:
            self._error = str(exc)
            return
        self._valid = True

    def _parse(self, raw: bytes) -> None:
        if len(raw) < 12 or raw[:4] != b"FORM" or raw[8:12] not in (b"AIFF", b"AIFC"):
            raise ValueError("File is not an AIFF file")
        is_aifc = raw[8:12] == b"AIFC"
        (form_size,) = struct.unpack(">I", raw[4:8])
        end = min(len(raw), 8 + form_size)

        comm: Optional[bytes] = None
        sound: Optional[bytes] = None
        pos = 12
        while pos + 8 <= end:
            chunk_id = raw[pos:pos + 4]
            (size,) = struct.unpack(">I", raw[pos + 4:pos + 8])
            body = raw[pos + 8:pos + 8 + size]
            pos += 8 + size + (size & 1)
            if chunk_id == b"COMM":
                comm = body
            elif chunk_id == b"SSND":
                if len(body) < 8:
                    raise ValueError("Malformed SSND chunk")
                (offset,) = struct.unpack(">I", body[:4])
                sound = body[8 + offset:]

        if comm is None or len(comm) < 18:
            raise ValueError("Missing or malformed COMM chunk")
        channels, frames, bits = struct.unpack(">hIh", comm[:8])
        rate = _read_extended(comm[8:18])
        compression = comm[18:22] if is_aifc and len(comm) >= 22 else b"NONE"

        if channels <= 0:
            raise ValueError(f"Invalid number of channels {channels}")
        if rate <= 0:
            raise ValueError(f"Invalid sample rate {rate}")
        if compression in _FLOAT_CODECS:
            pass
        elif compression in _BIG_ENDIAN_PCM + _LITTLE_ENDIAN_PCM:
            if not 1 <= bits <= 32:
                raise ValueError(f"Unsupported bits per sample {bits}")
        else:
            raise ValueError(f"Unsupported compression {compression!r}")

        self._num_channels = channels
        self._num_frames = frames
        self._bits = bits
        self._sample_rate = rate
        self._compression = compression
        self._sound = sound or b""

    @property
    def is_valid(self) -> bool:
        return self._valid

    @property
    def error(self) -> str:
        return self._error

    def _decode(self) -> np.ndarray:
        count = self._num_frames * self._num_channels
        if self._compression in _FLOAT_CODECS:
            dtype = np.dtype(_FLOAT_CODECS[self._compression])
            width = dtype.itemsize
        else:
            width = (self._bits + 7) // 8
            dtype = None

        needed = count * width
        if len(self._sound) < needed:
            raise SampleLoadError(
                f"Error while loading sample: expected {needed} bytes of sound data, "
                f"found {len(self._sound)}"
            )
        payload = self._sound[:needed]

        if dtype is not None:
            values = np.frombuffer(payload, dtype=dtype).astype(np.float32)
        elif width == 3:
            triples = np.frombuffer(payload, dtype=np.uint8).reshape(-1, 3).astype(np.uint32)
            if self._compression in _LITTLE_ENDIAN_PCM:
                triples = triples[:, ::-1]
            packed = (triples[:, 0] << 24) | (triples[:, 1] << 16) | (triples[:, 2] << 8)
            values = (packed.view(np.int32).astype(np.float64) / 2**31).astype(np.float32)
        else:
            order = "<" if self._compression in _LITTLE_ENDIAN_PCM else ">"
            ints = np.frombuffer(payload, dtype=np.dtype(f"{order}i{width}"))
            values = _integers_to_float(ints)

        return values.reshape(self._num_frames, self._num_channels).T

    def load(self) -> SampleBuffers:
        if not self._valid:
            raise SampleLoadError(self._error)
        _check_size(self._num_channels, self._num_frames)
        return SampleBuffers.from_channels(self._sample_rate, self._decode())

    def info(self) -> Optional[SampleInfo]:
        if not self._valid:
            return None
        return SampleInfo(self._sample_rate, self._num_channels, self._num_frames)


def is_supported_file_type(file_path: PathLike) -> bool:
    """Whether one of the loaders can read ``file_path``."""
    return SampleFileLoader.create(file_path).is_valid