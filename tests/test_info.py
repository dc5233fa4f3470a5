import numpy as np
import pytest

from samplesplit.info import describe_sample, format_duration
from samplesplit.sample_buffers import SampleBuffers
from samplesplit.sample_file import SampleFile


def test_format_duration_seconds_only():
    assert format_duration(44100, 44100) == "1.0s"


def test_format_duration_with_minutes():
    assert format_duration(1000, 61500) == "1m 1.500s"


def test_format_duration_grows_with_samples():
    shorter = format_duration(48000, 48000 * 2)
    longer = format_duration(48000, 48000 * 3)
    assert shorter != longer
    assert shorter.endswith("s") and longer.endswith("s")


def test_format_duration_invalid_rate():
    with pytest.raises(ValueError):
        format_duration(0, 10)


def test_describe_stereo_sample():
    buffers = SampleBuffers.from_channels(44100, np.zeros((2, 44100), dtype=np.float32) + 0.1)
    sample_file = SampleFile.from_buffers("/music/drum.wav", buffers)
    text = describe_sample(sample_file, buffers, 48000)
    assert text == f"drum.wav @ 48000 | {sample_file.file_size} bytes - stereo - 44100 [1.0s]"


def test_describe_mono_for_other_channel_counts():
    buffers = SampleBuffers.from_channels(8000, np.full((3, 80), 0.2, dtype=np.float32))
    sample_file = SampleFile.from_buffers("C:\\samples\\pad.wav", buffers)
    text = describe_sample(sample_file, buffers, 8000)
    assert text.startswith("pad.wav @ 8000 | ")
    assert " - mono - 80 [" in text


def test_describe_nothing_loaded():
    buffers = SampleBuffers.from_channels(8000, np.full((1, 8), 0.2, dtype=np.float32))
    assert describe_sample(SampleFile(), buffers, 8000) == ""
    sample_file = SampleFile.from_buffers("x.wav", buffers)
    assert describe_sample(sample_file, None, 8000) == ""
    assert describe_sample(sample_file, SampleBuffers(8000, 1, 0), 8000) == ""