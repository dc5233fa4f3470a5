# samplesplit

A library for working with audio samples that are split into slices. It
provides in-memory sample buffers with non-destructive edits, a slicer with
linear cross fading, resampling and waveform summaries, WAV/AIFF loading and
saving, and a temporary-file backed sample holder that can be stored in a
binary stream.

## Installation

```
pip install samplesplit
```

To run the tests:

```
pip install "samplesplit[test]"
pytest
```

## Modules

### `samplesplit.sample_buffers`

`SampleBuffers` holds one row of samples per channel, all at one sample rate
(`float32` by default).

- Construction: `SampleBuffers(sample_rate, num_channels, num_samples)` gives
  zero-filled buffers. `SampleBuffers.from_channels(sample_rate, channels)`
  copies a 2-D array or a list of equally long sequences.
- Properties: `sample_rate`, `num_channels`, `num_samples`, `dtype`, `data`
  and `has_samples`.
- Access: `has_channel(i)`, `channel(i)` returns a writable view and raises
  `IndexError` for a missing channel, `copy()` and `dispose()`.
- `interleaved_frames(frames_per_block=6170)` yields the samples interleaved
  frame by frame, in blocks.
- Edits that return new buffers: `first(n)`, `to_mono()`, `trim(threshold=None)`,
  `cut(from, to)`, `crop(from, to)`, `normalize(max_sample=1.0)` and
  `convert(dtype)`. `trim`, `cut`, `crop` and `normalize` return `None` when
  they would change nothing.

### `samplesplit.analysis`

- `resample(buffers, sample_rate)` uses polyphase filtering and returns buffers
  of `int(n * new_rate / old_rate)` samples. It returns `None` when the rate is
  already the target, and raises `ValueError` for a non-positive rate.
- `compute_min_max(buffers, channel, start_offset, num_samples_per_bucket, num_buckets)`
  returns a `MinMaxBuckets` with `mins`, `maxs` and `end_offset`.
- `compute_avg(...)` takes the same arguments and returns an `AverageBuckets`
  with `values` and `end_offset`. A sample that straddles two buckets is shared
  between them in proportion.

Both bucket functions accept fractional bucket sizes. They raise `ValueError`
when the buffers are empty or when a bucket size or count is not positive.

### `samplesplit.slicer`

- `Slicer(num_xfade_samples)` plays `buffer[start:end]` once, forward or in
  reverse (the `reverse` property).
  - Call `reset(buffer, start, end)` and then `start()`.
  - Read values with `next()` while `has_next()` is true, or iterate over the
    slicer.
  - `request_stop()` fades out when cross fading is on. `hard_stop()` stops at
    once.
  - `cross_fade(enabled)` switches fading on or off. Fading is turned off on its
    own when the slice is shorter than the fade.
- `LinearCrossFader(num_samples)` is the fader the slicer uses. It can also be
  used on its own.

### `samplesplit.loader`

- `SampleFileLoader.create(path)` returns a loader for the file:
  - `is_valid` and `error` report whether it could be opened.
  - `info()` returns a `SampleInfo` (`sample_rate`, `num_channels`,
    `num_samples`, `total_size()`).
  - `load()` returns `SampleBuffers` or raises `SampleLoadError`.
- Supported formats are WAV and AIFF/AIFC. AIFC can hold PCM or 32/64-bit float
  data.
- `is_supported_file_type(path)` tells whether a file can be read.

### `samplesplit.sample_file`

`SampleFile` keeps a private temporary copy of a sample. The copy is deleted
once no `SampleFile` refers to it.

- Creation: `SampleFile.from_path(path)`,
  `SampleFile.from_buffers(name, buffers, major_format, minor_format)` or
  `SampleFile.from_stream(stream, name, size)`. `SampleFile()` is the empty
  sample file.
- Members:
  - `empty`, `original_file_path`, `temporary_file_path` and `file_size`.
  - `load(sample_rate)` returns `(buffers, original_sample_rate)`, resampling
    if needed.
  - `load_original()` loads the sample without resampling.
  - `copy_to(stream)` writes the file's bytes to a stream.
- `save_buffers(path, buffers, major_format=MajorFormat.WAV, minor_format=MinorFormat.PCM24)`
  writes PCM WAV or AIFF at 16, 24 or 32 bits.
- `write_sample_file(sample_file, stream)` and `read_sample_file(stream)` store
  a sample in a binary stream. The layout is a 128-byte NUL-padded name, then a
  little-endian 64-bit size, then the file bytes.
- `extract_filename(path)` and `compute_file_size(path)` are small path
  helpers. `compute_file_size` returns -1 for a missing file.
- Failures raise `SampleFileError`, or `SampleLoadError` when decoding fails.

### `samplesplit.info`

- `format_duration(sample_rate, num_samples)` returns strings such as `"2.500s"`
  style values, `"1m 5.0s"`.
- `describe_sample(sample_file, buffers, original_sample_rate)` builds the
  one-line summary: file name, rate, size, mono/stereo, sample count and
  duration.

## Example

```python
import numpy as np

from samplesplit.sample_buffers import SampleBuffers
from samplesplit.analysis import compute_min_max
from samplesplit.slicer import Slicer

buffers = SampleBuffers.from_channels(
    44100, [np.array([0.0, 0.0, 0.5, -0.25, 0.0], dtype=np.float32)]
)
trimmed = buffers.trim(0.001)  # keeps [0.5, -0.25]

buckets = compute_min_max(buffers, 0, 0, 2.0, 2)
print(buckets.mins, buckets.maxs, buckets.end_offset)

slicer = Slicer(2)
slicer.reset(buffers.channel(0), 0, buffers.num_samples)
slicer.start()
played = list(slicer)
```

## What it does not do

This is a library only. It has no command-line tool, no user interface and no
real-time audio engine. Nothing here records or plays sound on a device.
Loading covers WAV and AIFF/AIFC only. Compressed formats such as MP3, FLAC or
Ogg cannot be read. Saving writes integer PCM only.