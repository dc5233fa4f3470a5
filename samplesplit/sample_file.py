"""A sample kept as a private temporary copy, plus saving and stream serialization."""

from __future__ import annotations

import enum
import logging
import math
import os
import shutil
import struct
import tempfile
import weakref
from pathlib import Path
from typing import BinaryIO, Optional, Union

import numpy as np

from samplesplit.analysis import resample
from samplesplit.loader import SampleFileLoader, SampleLoadError
from samplesplit.sample_buffers import SampleBuffers

_log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

_BLOCK_SIZE = 1024
NAME_FIELD_SIZE = 128
"""Size in bytes of the (NUL padded, UTF-8) file name field in a serialized sample file."""


class MajorFormat(enum.Enum):
    """Container format used when saving samples."""

    WAV = "wav"
    AIFF = "aiff"


class MinorFormat(enum.Enum):
    """PCM encoding used when saving samples (value is the bit depth)."""

    PCM16 = 16
    PCM24 = 24
    PCM32 = 32

    @property
    def bits(self) -> int:
        return self.value


class SampleFileError(Exception):
    """Raised when a sample file cannot be created, copied, saved or read."""


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        _log.warning("Could not delete %s", path)


class _TemporaryFile:
    """Owns a file on disk which is deleted once no sample file refers to it any more."""

    def __init__(self, path: str):
        self.path = path
        self._finalizer = weakref.finalize(self, _remove_file, path)


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except OSError:
        pass


def _create_temporary_path(original_file_path: str) -> str:
    suffix = Path(extract_filename(original_file_path)).suffix
    if not suffix[1:].isalnum():
        suffix = ""
    fd, path = tempfile.mkstemp(prefix="samplesplit-", suffix=suffix)
    os.close(fd)
    return path


def extract_filename(file_path: PathLike) -> str:
    """Return the part of ``file_path`` after the last ``/`` (or, failing that, ``\\``)."""
    path = os.fspath(file_path)
    found = path.rfind("/")
    if found == -1:
        found = path.rfind("\\")
    return path if found == -1 else path[found + 1:]


def compute_file_size(file_path: PathLike) -> int:
    """Size of the file in bytes, or -1 if it does not exist."""
    try:
        return os.path.getsize(file_path)
    except OSError:
        return -1


def _extended(value: float) -> bytes:
    """Encode ``value`` as an 80-bit IEEE 754 extended precision number."""
    if value == 0:
        return bytes(10)
    mantissa, exponent = math.frexp(value)
    return struct.pack(">HQ", exponent - 1 + 16383, int(mantissa * 2**64))


def _pcm_bytes(block: np.ndarray, bits: int, big_endian: bool) -> bytes:
    scale = float(2 ** (bits - 1) - 1)
    clean = np.nan_to_num(block.astype(np.float64), nan=0.0, posinf=1.0, neginf=-1.0)
    ints = np.rint(np.clip(clean, -1.0, 1.0) * scale).astype(np.int64)
    order = ">" if big_endian else "<"
    if bits == 16:
        return ints.astype(f"{order}i2").tobytes()
    if bits == 32:
        return ints.astype(f"{order}i4").tobytes()
    raw = ints.astype("<i4").view(np.uint8).reshape(-1, 4)[:, :3]
    if big_endian:
        raw = raw[:, ::-1]
    return raw.tobytes()


def _wav_header(channels: int, rate: int, bits: int, data_size: int, pad: int) -> bytes:
    block_align = channels * bits // 8
    return (
        struct.pack("<4sI4s", b"RIFF", 36 + data_size + pad, b"WAVE")
        + struct.pack("<4sIHHIIHH", b"fmt ", 16, 1, channels, rate, rate * block_align, block_align, bits)
        + struct.pack("<4sI", b"data", data_size)
    )


def _aiff_header(channels: int, frames: int, rate: int, bits: int, data_size: int, pad: int) -> bytes:
    comm = struct.pack(">hIh", channels, frames, bits) + _extended(rate)
    ssnd_size = 8 + data_size
    form_size = 4 + 8 + len(comm) + 8 + ssnd_size + pad
    return (
        struct.pack(">4sI4s", b"FORM", form_size, b"AIFF")
        + struct.pack(">4sI", b"COMM", len(comm))
        + comm
        + struct.pack(">4sIII", b"SSND", ssnd_size, 0, 0)
    )


def save_buffers(
    to_file_path: PathLike,
    buffers: SampleBuffers,
    major_format: MajorFormat = MajorFormat.WAV,
    minor_format: MinorFormat = MinorFormat.PCM24,
) -> None:
    """Write ``buffers`` to ``to_file_path`` as PCM WAV or AIFF."""
    if buffers.num_channels <= 0:
        raise SampleFileError("Cannot save buffers without channels")
    if buffers.sample_rate <= 0:
        raise SampleFileError("Cannot save buffers without a valid sample rate")

    bits = minor_format.bits
    channels = buffers.num_channels
    frames = buffers.num_samples
    rate = int(buffers.sample_rate)
    data_size = frames * channels * bits // 8
    pad = data_size & 1
    big_endian = major_format is MajorFormat.AIFF

    if big_endian:
        header = _aiff_header(channels, frames, rate, bits, data_size, pad)
    else:
        header = _wav_header(channels, rate, bits, data_size, pad)

    try:
        with open(to_file_path, "wb") as out:
            out.write(header)
            for block in buffers.interleaved_frames():
                out.write(_pcm_bytes(block, bits, big_endian))
            if pad:
                out.write(b"\0")
    except OSError as exc:
        raise SampleFileError(f"Could not open (W) {os.fspath(to_file_path)}") from exc


class SampleFile:
    """A sample held as a temporary copy that is deleted when no copy of this object remains.

    ``SampleFile()`` is the empty sample file, pointing to nothing.
    """

    def __init__(
        self,
        original_file_path: Optional[PathLike] = None,
        temporary_file_path: Optional[PathLike] = None,
        file_size: int = 0,
    ):
        self._original = "" if original_file_path is None else os.fspath(original_file_path)
        self._temporary = (
            None if temporary_file_path is None else _TemporaryFile(os.fspath(temporary_file_path))
        )
        self._file_size = file_size

    @property
    def empty(self) -> bool:
        return self._temporary is None

    def _require_file(self) -> _TemporaryFile:
        if self._temporary is None:
            raise SampleFileError("No file to load.")
        return self._temporary

    @property
    def temporary_file_path(self) -> str:
        return self._require_file().path

    @property
    def original_file_path(self) -> str:
        self._require_file()
        return self._original

    @property
    def file_size(self) -> int:
        return self._file_size

    def load(self, sample_rate: float) -> tuple[SampleBuffers, float]:
        """Load the sample at ``sample_rate``; returns the buffers and the file's own sample rate."""
        buffers = self.load_original()
        original_sample_rate = buffers.sample_rate
        if original_sample_rate != sample_rate:
            _log.info("Resampling %s -> %s", original_sample_rate, sample_rate)
            buffers = resample(buffers, sample_rate)
        return buffers, original_sample_rate

    def load_original(self) -> SampleBuffers:
        """Load the sample without resampling."""
        path = self._require_file().path
        loader = SampleFileLoader.create(path)
        if not loader.is_valid:
            raise SampleLoadError(loader.error)
        return loader.load()

    def copy_to(self, stream: BinaryIO) -> None:
        """Write the content of the file to a binary stream."""
        path = self._require_file().path
        remaining = self._file_size
        try:
            with open(path, "rb") as src:
                for chunk in iter(lambda: src.read(_BLOCK_SIZE), b""):
                    written = stream.write(chunk)
                    if written is not None and written != len(chunk):
                        raise SampleFileError("Error while writing to stream")
                    remaining -= len(chunk)
        except OSError as exc:
            raise SampleFileError(f"Could not open (R) {path}") from exc
        if remaining != 0:
            raise SampleFileError(f"File {path} does not have the expected size {self._file_size}")

    @classmethod
    def from_path(cls, from_file_path: PathLike) -> "SampleFile":
        """Copy a user provided file into a temporary file."""
        source = os.fspath(from_file_path)
        to_path = _create_temporary_path(source)
        try:
            with open(source, "rb") as src, open(to_path, "wb") as dst:
                shutil.copyfileobj(src, dst, _BLOCK_SIZE)
                size = dst.tell()
        except OSError as exc:
            _discard(to_path)
            raise SampleFileError(f"Could not copy {source}") from exc
        _log.debug("copied %s -> %s", source, to_path)
        return cls(source, to_path, size)

    @classmethod
    def from_buffers(
        cls,
        original_file_path: PathLike,
        buffers: SampleBuffers,
        major_format: MajorFormat = MajorFormat.WAV,
        minor_format: MinorFormat = MinorFormat.PCM24,
    ) -> "SampleFile":
        """Save ``buffers`` into a temporary file."""
        original = os.fspath(original_file_path)
        to_path = _create_temporary_path(original)
        try:
            save_buffers(to_path, buffers, major_format, minor_format)
        except SampleFileError:
            _discard(to_path)
            raise
        return cls(original, to_path, compute_file_size(to_path))

    @classmethod
    def from_stream(cls, stream: BinaryIO, from_file_path: PathLike, file_size: int) -> "SampleFile":
        """Read ``file_size`` bytes from ``stream`` into a temporary file."""
        original = os.fspath(from_file_path)
        to_path = _create_temporary_path(original)
        remaining = file_size
        try:
            with open(to_path, "wb") as dst:
                while remaining > 0:
                    chunk = stream.read(min(_BLOCK_SIZE, remaining))
                    if not chunk:
                        break
                    dst.write(chunk)
                    remaining -= len(chunk)
        except OSError as exc:
            _discard(to_path)
            raise SampleFileError(f"Error while writing file {to_path}") from exc
        if remaining != 0:
            _discard(to_path)
            raise SampleFileError("Corrupted stream: not enough data")
        return cls(original, to_path, file_size)

    def __repr__(self) -> str:
        if self.empty:
            return "SampleFile()"
        return f"SampleFile({self._original!r}, size={self._file_size})"


def _encode_name(name: str) -> bytes:
    raw = name.encode("utf-8")[: NAME_FIELD_SIZE - 1]
    raw = raw.decode("utf-8", errors="ignore").encode("utf-8")
    return raw.ljust(NAME_FIELD_SIZE, b"\0")


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if data is None or len(data) != size:
        raise SampleFileError("Corrupted stream: not enough data")
    return data


def write_sample_file(sample_file: SampleFile, stream: BinaryIO) -> None:
    """Serialize: name field, file size (unsigned 64-bit little endian), then the file bytes."""
    if sample_file.empty:
        stream.write(_encode_name(""))
        stream.write(struct.pack("<Q", 0))
        return
    stream.write(_encode_name(sample_file.original_file_path))
    stream.write(struct.pack("<Q", sample_file.file_size))
    sample_file.copy_to(stream)


def read_sample_file(stream: BinaryIO) -> SampleFile:
    """Read back what ``write_sample_file`` wrote.

    On a truncated payload the stream is moved back to where the payload started.
    """
    raw_name = _read_exactly(stream, NAME_FIELD_SIZE)
    name = raw_name.split(b"\0", 1)[0].decode("utf-8", errors="replace")
    (size,) = struct.unpack("<Q", _read_exactly(stream, 8))
    if size == 0 and not name:
        return SampleFile()
    position = stream.tell()
    try:
        return SampleFile.from_stream(stream, name, size)
    except SampleFileError:
        stream.seek(position)
        _log.warning("Could not save the data in a temporary file")
        raise