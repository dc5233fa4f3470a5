import numpy as np
import pytest

from samplesplit.analysis import compute_avg, compute_min_max, resample
from samplesplit.sample_buffers import SampleBuffers


def _ramp(n=100, channels=1, rate=44100):
    data = np.tile(np.linspace(-1.0, 1.0, n, dtype=np.float32), (channels, 1))
    return SampleBuffers.from_channels(rate, data)


def _constant(value, n=50, rate=44100):
    return SampleBuffers.from_channels(rate, np.full((1, n), value, dtype=np.float32))


def test_resample_same_rate_returns_none():
    assert resample(_ramp(rate=48000), 48000) is None


@pytest.mark.parametrize("rate", [0, -44100])
def test_resample_rejects_non_positive_rate(rate):
    with pytest.raises(ValueError):
        resample(_ramp(), rate)


def test_resample_downsample_length_and_layout():
    buffers = _ramp(n=1000, channels=2, rate=44100)
    result = resample(buffers, 22050)
    assert result.num_samples == 500
    assert result.num_channels == 2
    assert result.sample_rate == 22050
    assert result.dtype == buffers.dtype


def test_resample_preserves_low_frequency_sine():
    old_rate, new_rate, freq = 48000, 96000, 100.0
    t_old = np.arange(4800) / old_rate
    buffers = SampleBuffers.from_channels(
        old_rate, np.sin(2 * np.pi * freq * t_old).astype(np.float32).reshape(1, -1)
    )
    result = resample(buffers, new_rate)
    assert result.num_samples == 2 * buffers.num_samples
    t_new = np.arange(result.num_samples) / new_rate
    expected = np.sin(2 * np.pi * freq * t_new)
    middle = slice(1000, result.num_samples - 1000)
    np.testing.assert_allclose(result.channel(0)[middle], expected[middle], atol=1e-3)


def test_resample_does_not_modify_source():
    buffers = _ramp(n=200)
    before = buffers.data.copy()
    resample(buffers, 22050)
    np.testing.assert_array_equal(buffers.data, before)


def test_min_max_invariants_on_ramp():
    buffers = _ramp(n=100)
    values = buffers.channel(0)
    result = compute_min_max(buffers, 0, 0, 3.5, 20)
    assert 0 < len(result) <= 20
    assert len(result.mins) == len(result.maxs)
    assert np.all(result.mins <= result.maxs)
    assert np.all(result.mins >= values.min())
    assert np.all(result.maxs <= values.max())
    assert np.all(np.diff(result.mins) >= 0)
    assert 0 <= result.end_offset < buffers.num_samples


def test_min_max_constant_signal():
    result = compute_min_max(_constant(0.25), 0, 0, 2.0, 10)
    assert len(result) == 10
    np.testing.assert_array_equal(result.mins, np.full(10, 0.25, dtype=np.float32))
    np.testing.assert_array_equal(result.maxs, np.full(10, 0.25, dtype=np.float32))


def test_min_max_stops_at_requested_bucket_count():
    result = compute_min_max(_ramp(n=1000), 0, 0, 2.0, 7)
    assert len(result) == 7


def test_min_max_start_offset_past_end_gives_nothing():
    result = compute_min_max(_ramp(n=10), 0, 50, 2.0, 5)
    assert len(result) == 0
    assert result.end_offset is None


def test_avg_constant_signal_integer_bucket():
    result = compute_avg(_constant(0.5, n=10), 0, 0, 2.0, 100)
    assert len(result) > 0
    np.testing.assert_allclose(result.values, 0.5, rtol=1e-6)


def test_avg_constant_signal_fractional_bucket():
    result = compute_avg(_constant(-0.75, n=37), 0, 0, 2.5, 100)
    assert len(result) > 0
    np.testing.assert_allclose(result.values, -0.75, rtol=1e-5)


def test_avg_stops_at_requested_bucket_count():
    result = compute_avg(_ramp(n=1000), 0, 0, 3.0, 4)
    assert len(result) == 4
    assert result.end_offset < 1000


def test_avg_values_within_signal_range():
    buffers = _ramp(n=101)
    result = compute_avg(buffers, 0, 10, 4.0, 50)
    assert 0 < len(result) <= 50
    assert len(result.values) == len(result)
    assert float(result.values.min()) >= -1.0 - 1e-6
    assert float(result.values.max()) <= 1.0 + 1e-6
    assert 10 <= result.end_offset <= buffers.num_samples


def test_avg_start_offset_past_end_gives_nothing():
    result = compute_avg(_ramp(n=10), 0, 99, 2.0, 5)
    assert len(result) == 0


@pytest.mark.parametrize("func", [compute_min_max, compute_avg])
@pytest.mark.parametrize("per_bucket,buckets", [(0, 5), (-1.0, 5), (2.0, 0)])
def test_bucket_invalid_arguments(func, per_bucket, buckets):
    with pytest.raises(ValueError):
        func(_ramp(), 0, 0, per_bucket, buckets)


@pytest.mark.parametrize("func", [compute_min_max, compute_avg])
def test_bucket_no_samples(func):
    with pytest.raises(ValueError):
        func(SampleBuffers(44100, 1, 0), 0, 0, 2.0, 5)


@pytest.mark.parametrize("func", [compute_min_max, compute_avg])
def test_bucket_missing_channel(func):
    with pytest.raises(IndexError):
        func(_ramp(channels=1), 3, 0, 2.0, 5)