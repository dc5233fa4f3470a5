"""Per-channel sample storage and the non-destructive edits applied to it."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Optional, Union

import numpy as np

SILENT_THRESHOLD = 2.0e-8
"""Default level at or below which a sample counts as silence."""

BUFFER_SIZE_FRAMES = 6170
"""Default number of frames per interleaved block."""

ChannelData = Union[np.ndarray, Sequence[Sequence[float]]]


class SampleBuffers:
    """One buffer of samples per channel, all at the same sample rate.

    The editing operations never modify the instance they are called on: they
    return a new instance, or ``None`` when the operation would leave the
    samples unchanged (nothing to trim, cut, crop or normalize).
    """

    def __init__(self, sample_rate: float = 0, num_channels: int = 0, num_samples: int = 0):
        self._sample_rate = sample_rate
        self._data = np.zeros((max(num_channels, 0), max(num_samples, 0)), dtype=np.float32)

    @classmethod
    def from_channels(cls, sample_rate: float, channels: ChannelData) -> "SampleBuffers":
        """Build buffers from a 2-D array (or list of equally long sequences), one row per channel."""
        data = np.array(channels, copy=True)
        if data.ndim == 1 and data.size == 0:
            data = data.reshape(0, 0)
        if data.ndim != 2:
            raise ValueError("channels must be two-dimensional: one row per channel")
        if not np.issubdtype(data.dtype, np.floating):
            data = data.astype(np.float32)
        return cls._wrap(sample_rate, data)

    @classmethod
    def _wrap(cls, sample_rate: float, data: np.ndarray) -> "SampleBuffers":
        buffers = cls.__new__(cls)
        buffers._sample_rate = sample_rate
        buffers._data = data
        return buffers

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @property
    def num_channels(self) -> int:
        return self._data.shape[0]

    @property
    def num_samples(self) -> int:
        return self._data.shape[1]

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    @property
    def data(self) -> np.ndarray:
        """The underlying (channels x samples) array."""
        return self._data

    @property
    def has_samples(self) -> bool:
        return self.num_channels > 0 and self.num_samples > 0

    def has_channel(self, channel: int) -> bool:
        return 0 <= channel < self.num_channels

    def channel(self, channel: int) -> np.ndarray:
        """Return the samples of one channel (a writable view)."""
        if not self.has_channel(channel):
            raise IndexError(f"no channel {channel} (buffers have {self.num_channels})")
        return self._data[channel]

    def copy(self) -> "SampleBuffers":
        return self._wrap(self._sample_rate, self._data.copy())

    __copy__ = copy

    def dispose(self) -> None:
        """Release the samples; the buffers end up with no channels and no samples."""
        self._data = np.zeros((0, 0), dtype=self._data.dtype)

    def interleaved_frames(self, frames_per_block: int = BUFFER_SIZE_FRAMES) -> Iterator[np.ndarray]:
        """Yield the samples interleaved by frame, in blocks of at most ``frames_per_block`` frames."""
        if frames_per_block <= 0:
            raise ValueError("frames_per_block must be positive")
        for start in range(0, self.num_samples, frames_per_block):
            yield self._data[:, start:start + frames_per_block].T.reshape(-1)

    def first(self, num_samples: int) -> "SampleBuffers":
        """Return new buffers holding (up to) the first ``num_samples`` samples."""
        if num_samples < 0:
            raise ValueError("num_samples must not be negative")
        num_samples = min(num_samples, self.num_samples)
        return self._wrap(self._sample_rate, self._data[:, :num_samples].copy())

    def to_mono(self) -> "SampleBuffers":
        """Return a single channel holding the average of all channels."""
        if self.num_channels == 1:
            return self.copy()
        dtype = self._data.dtype
        with np.errstate(invalid="ignore", divide="ignore"):
            mono = self._data.sum(axis=0, dtype=dtype) / dtype.type(self.num_channels)
        return self._wrap(self._sample_rate, mono.astype(dtype).reshape(1, -1))

    def trim(self, silent_threshold: Optional[float] = None) -> Optional["SampleBuffers"]:
        """Remove silence at both ends; silence must be present in every channel.

        Returns ``None`` when there is no samples or nothing to remove.
        """
        if not self.has_samples:
            return None
        threshold = SILENT_THRESHOLD if silent_threshold is None else silent_threshold
        threshold = self._data.dtype.type(threshold)

        loud = np.flatnonzero((np.abs(self._data) > threshold).any(axis=0))
        if loud.size == 0:
            return self._wrap(self._sample_rate, self._data[:, :0].copy())

        first_index, last_index = int(loud[0]), int(loud[-1])
        if first_index == 0 and last_index == self.num_samples - 1:
            return None
        return self._wrap(self._sample_rate, self._data[:, first_index:last_index + 1].copy())

    def _clamp_range(self, from_index: int, to_index: int) -> Optional[tuple[int, int]]:
        if not self.has_samples:
            return None
        if to_index < 1 or from_index >= self.num_samples:
            return None
        from_index = min(max(from_index, 0), self.num_samples - 1)
        to_index = min(max(to_index, 0), self.num_samples)
        if from_index >= to_index:
            return None
        return from_index, to_index

    def cut(self, from_index: int, to_index: int) -> Optional["SampleBuffers"]:
        """Remove ``[from_index, to_index)`` and keep the rest.

        Returns ``None`` when there is nothing to cut.
        """
        bounds = self._clamp_range(from_index, to_index)
        if bounds is None:
            return None
        from_index, to_index = bounds
        if to_index - from_index >= self.num_samples:
            return self._wrap(self._sample_rate, self._data[:, :0].copy())
        kept = np.concatenate((self._data[:, :from_index], self._data[:, to_index:]), axis=1)
        return self._wrap(self._sample_rate, kept)

    def crop(self, from_index: int, to_index: int) -> Optional["SampleBuffers"]:
        """Keep only ``[from_index, to_index)``.

        Returns ``None`` when there is nothing to crop.
        """
        bounds = self._clamp_range(from_index, to_index)
        if bounds is None:
            return None
        from_index, to_index = bounds
        if to_index - from_index >= self.num_samples:
            return None
        return self._wrap(self._sample_rate, self._data[:, from_index:to_index].copy())

    def normalize(self, max_sample: float = 1.0) -> Optional["SampleBuffers"]:
        """Scale all channels so the largest absolute sample equals ``max_sample``.

        Returns ``None`` when already normalized, silent, or empty.
        """
        if not self.has_samples:
            return None
        dtype = self._data.dtype
        target = dtype.type(max_sample)
        absolute_max = np.abs(self._data).max()
        if absolute_max == target or absolute_max == 0:
            return None
        factor = dtype.type(target / absolute_max)
        return self._wrap(self._sample_rate, (self._data * factor).astype(dtype))

    def convert(self, dtype) -> "SampleBuffers":
        """Return a copy whose samples are stored as ``dtype``."""
        return self._wrap(self._sample_rate, self._data.astype(dtype))

    def __repr__(self) -> str:
        return (
            f"SampleBuffers(sample_rate={self._sample_rate}, "
            f"num_channels={self.num_channels}, num_samples={self.num_samples}, dtype={self.dtype})"
        )