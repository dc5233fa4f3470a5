import struct

import numpy as np
import pytest
from scipy.io import wavfile

from samplesplit.loader import (
    SampleFileLoader,
    SampleInfo,
    SampleLoadError,
    is_supported_file_type,
)

# 44100 as an 80-bit extended float, as stored in AIFF COMM chunks
RATE_44100 = b"\x40\x0e\xac\x44\x00\x00\x00\x00\x00\x00"


def _chunk(chunk_id, body):
    pad = b"\x00" if len(body) % 2 else b""
    return chunk_id + struct.pack(">I", len(body)) + body + pad


def _write_aiff(path, channels, frames, bits, sound, aifc=False, compression=b"NONE"):
    comm = struct.pack(">hIh", channels, frames, bits) + RATE_44100
    if aifc:
        comm += compression + b"\x00\x00"
    chunks = _chunk(b"COMM", comm) + _chunk(b"SSND", struct.pack(">II", 0, 0) + sound)
    form = b"AIFC" if aifc else b"AIFF"
    path.write_bytes(b"FORM" + struct.pack(">I", 4 + len(chunks)) + form + chunks)
    return path


def test_wav_int16_values_are_scaled(tmp_path):
    path = tmp_path / "a.wav"
    wavfile.write(str(path), 44100, np.array([[0, 16384], [-32768, 0]], dtype=np.int16))
    loader = SampleFileLoader.create(path)
    assert loader.is_valid
    assert loader.error == ""
    buffers = loader.load()
    assert buffers.sample_rate == 44100
    assert buffers.num_channels == 2
    assert buffers.channel(0).tolist() == [0.0, -1.0]
    assert buffers.channel(1).tolist() == [0.5, 0.0]


def test_wav_float_round_trip(tmp_path):
    path = tmp_path / "f.wav"
    data = np.array([[0.25, -0.125, 0.75]], dtype=np.float32).T
    wavfile.write(str(path), 48000, data)
    buffers = SampleFileLoader.create(path).load()
    assert buffers.num_channels == 1
    np.testing.assert_array_equal(buffers.channel(0), data[:, 0])


def test_wav_info_matches_load(tmp_path):
    path = tmp_path / "i.wav"
    wavfile.write(str(path), 22050, np.zeros((5, 2), dtype=np.int16))
    loader = SampleFileLoader.create(path)
    info = loader.info()
    assert info == SampleInfo(22050.0, 2, 5)
    buffers = loader.load()
    assert (buffers.num_channels, buffers.num_samples) == (info.num_channels, info.num_samples)


def test_sample_info_total_size():
    info = SampleInfo(44100.0, 2, 7)
    assert info.total_size() == info.num_channels * info.num_samples


def test_aiff_16bit_matches_wav(tmp_path):
    values = np.array([100, -200, 3000, -32768], dtype=np.int16)
    aiff = _write_aiff(tmp_path / "a.aiff", 2, 2, 16, values.astype(">i2").tobytes())
    wav = tmp_path / "a.wav"
    wavfile.write(str(wav), 44100, values.reshape(2, 2))
    from_aiff = SampleFileLoader.create(aiff).load()
    from_wav = SampleFileLoader.create(wav).load()
    assert from_aiff.sample_rate == 44100
    np.testing.assert_array_equal(from_aiff.data, from_wav.data)


def test_aifc_sowt_matches_big_endian(tmp_path):
    values = np.array([1, -2, 1234, -4321, 32767], dtype=np.int16)
    big = _write_aiff(tmp_path / "b.aiff", 1, 5, 16, values.astype(">i2").tobytes())
    little = _write_aiff(
        tmp_path / "l.aifc", 1, 5, 16, values.astype("<i2").tobytes(), aifc=True, compression=b"sowt"
    )
    np.testing.assert_array_equal(
        SampleFileLoader.create(big).load().data, SampleFileLoader.create(little).load().data
    )


def test_aiff_24bit(tmp_path):
    sound = b"\x40\x00\x00" + b"\xc0\x00\x00"
    path = _write_aiff(tmp_path / "c.aiff", 1, 2, 24, sound)
    buffers = SampleFileLoader.create(path).load()
    assert buffers.channel(0).tolist() == [0.5, -0.5]


def test_aifc_float32(tmp_path):
    values = np.array([0.5, -0.25, 0.125], dtype=np.float32)
    path = _write_aiff(
        tmp_path / "f.aifc", 1, 3, 32, values.astype(">f4").tobytes(), aifc=True, compression=b"fl32"
    )
    np.testing.assert_array_equal(SampleFileLoader.create(path).load().channel(0), values)


def test_aifc_unsupported_compression_is_invalid(tmp_path):
    path = _write_aiff(tmp_path / "u.aifc", 1, 1, 16, b"\x00\x00", aifc=True, compression=b"ulaw")
    loader = SampleFileLoader.create(path)
    assert loader.is_valid is False
    assert loader.info() is None


def test_aiff_truncated_sound_fails_to_load(tmp_path):
    path = _write_aiff(tmp_path / "t.aiff", 2, 10, 16, b"\x00\x01\x00\x02")
    loader = SampleFileLoader.create(path)
    assert loader.is_valid
    with pytest.raises(SampleLoadError):
        loader.load()


def test_too_big_file_is_rejected(tmp_path):
    path = _write_aiff(tmp_path / "big.aiff", 2, 2**31, 16, b"")
    loader = SampleFileLoader.create(path)
    assert loader.info().total_size() == 2 * 2**31
    with pytest.raises(SampleLoadError, match="Input file is too big"):
        loader.load()


def test_garbage_file_is_invalid(tmp_path):
    path = tmp_path / "garbage.wav"
    path.write_bytes(b"this is not audio at all")
    loader = SampleFileLoader.create(path)
    assert loader.is_valid is False
    assert loader.error != ""
    assert loader.info() is None
    with pytest.raises(SampleLoadError):
        loader.load()


def test_is_supported_file_type(tmp_path):
    good = tmp_path / "g.wav"
    wavfile.write(str(good), 8000, np.zeros(4, dtype=np.int16))
    bad = tmp_path / "b.txt"
    bad.write_text("hello")
    assert is_supported_file_type(good) is True
    assert is_supported_file_type(bad) is False
    assert is_supported_file_type(tmp_path / "missing.wav") is False