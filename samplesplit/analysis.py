"""Resampling and per-bucket summaries (min/max, average) of sample buffers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional

import numpy as np
from scipy.signal import resample_poly

from samplesplit.sample_buffers import SampleBuffers

_log = logging.getLogger(__name__)

_MAX_RATIO_DENOMINATOR = 10000


@dataclass(frozen=True)
class MinMaxBuckets:
    """Minimum and maximum of each bucket, and the index of the sample that closed the last bucket."""

    mins: np.ndarray
    maxs: np.ndarray
    end_offset: Optional[int]

    def __len__(self) -> int:
        return len(self.mins)


@dataclass(frozen=True)
class AverageBuckets:
    """Average of each bucket, and the index at which the last bucket was closed."""

    values: np.ndarray
    end_offset: Optional[int]

    def __len__(self) -> int:
        return len(self.values)


def _conversion_ratio(from_rate: float, to_rate: float) -> Fraction:
    ratio = Fraction(to_rate) / Fraction(from_rate)
    return ratio.limit_denominator(_MAX_RATIO_DENOMINATOR)


def resample(buffers: SampleBuffers, sample_rate: float) -> Optional[SampleBuffers]:
    """Return new buffers holding the samples converted to ``sample_rate``.

    Returns ``None`` when the buffers already use that sample rate.
    """
    if buffers.sample_rate == sample_rate:
        _log.warning("resample called with the same sample rate")
        return None
    if sample_rate <= 0:
        raise ValueError("sample rate must be positive")
    if buffers.sample_rate <= 0:
        raise ValueError("buffers have no valid sample rate to resample from")

    new_num_samples = int(buffers.num_samples * sample_rate / buffers.sample_rate)
    out = np.zeros((buffers.num_channels, new_num_samples), dtype=buffers.dtype)

    if new_num_samples > 0 and buffers.has_samples:
        ratio = _conversion_ratio(buffers.sample_rate, sample_rate)
        converted = resample_poly(
            buffers.data.astype(np.float64), ratio.numerator, ratio.denominator, axis=1
        )
        count = min(new_num_samples, converted.shape[1])
        out[:, :count] = converted[:, :count]

    return SampleBuffers.from_channels(sample_rate, out)


def _check_bucket_arguments(
    buffers: SampleBuffers, num_samples_per_bucket: float, num_buckets: int
) -> None:
    if not buffers.has_samples:
        raise ValueError("buffers have no samples")
    if num_samples_per_bucket <= 0:
        raise ValueError("num_samples_per_bucket must be positive")
    if num_buckets <= 0:
        raise ValueError("num_buckets must be positive")


def compute_min_max(
    buffers: SampleBuffers,
    channel: int,
    start_offset: int,
    num_samples_per_bucket: float,
    num_buckets: int,
) -> MinMaxBuckets:
    """Split one channel, from ``start_offset``, into buckets and return the min and max of each."""
    _check_bucket_arguments(buffers, num_samples_per_bucket, num_buckets)
    samples = buffers.channel(channel).tolist()
    start_offset = min(max(start_offset, 0), buffers.num_samples)

    mins: list[float] = []
    maxs: list[float] = []
    end_offset: Optional[int] = None
    remaining = float(num_samples_per_bucket)
    low = high = 0.0
    init = True

    for index in range(start_offset, len(samples)):
        sample = samples[index]
        if init:
            low = high = sample
            init = False

        if remaining < 1.0:
            if remaining < 0.5:
                low = min(low, sample)
                high = max(high, sample)
                mins.append(low)
                maxs.append(high)
                init = True
            else:
                mins.append(low)
                maxs.append(high)
                low = high = sample
            end_offset = index
            if len(mins) == num_buckets:
                break
            remaining += num_samples_per_bucket - 1.0
        else:
            low = min(low, sample)
            high = max(high, sample)
            remaining -= 1

    return MinMaxBuckets(
        np.array(mins, dtype=buffers.dtype), np.array(maxs, dtype=buffers.dtype), end_offset
    )


def compute_avg(
    buffers: SampleBuffers,
    channel: int,
    start_offset: int,
    num_samples_per_bucket: float,
    num_buckets: int,
) -> AverageBuckets:
    """Split one channel, from ``start_offset``, into buckets and return the average of each.

    A sample straddling two buckets is shared between them in proportion; a
    trailing partial bucket is averaged over the samples it holds.
    """
    _check_bucket_arguments(buffers, num_samples_per_bucket, num_buckets)
    samples = buffers.channel(channel).tolist()
    num_samples = len(samples)
    start_offset = min(max(start_offset, 0), num_samples)

    averages: list[float] = []
    end_offset: Optional[int] = None
    remaining = float(num_samples_per_bucket)
    total = 0.0

    index = start_offset
    while index < num_samples:
        sample = samples[index]
        if remaining < 1.0:
            partial = sample * remaining
            total = (total + partial) / num_samples_per_bucket
            averages.append(total)
            end_offset = index
            total = sample - partial
            if len(averages) == num_buckets:
                break
            remaining += num_samples_per_bucket - 1.0
        else:
            total += sample
            remaining -= 1
        index += 1

    if len(averages) < num_buckets and remaining < num_samples_per_bucket:
        averages.append(total / (num_samples_per_bucket - remaining))
        end_offset = index

    return AverageBuckets(np.array(averages, dtype=buffers.dtype), end_offset)