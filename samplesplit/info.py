"""Human readable description of the loaded sample."""

from __future__ import annotations

from typing import Optional

from samplesplit.sample_buffers import SampleBuffers
from samplesplit.sample_file import SampleFile, extract_filename


def format_duration(sample_rate: float, num_samples: int) -> str:
    """Duration of ``num_samples`` at ``sample_rate`` as ``"<m>m <s>.<ms>s"`` (minutes only when non zero)."""
    if sample_rate <= 0:
        raise ValueError("sample rate must be positive")
    total_ms = int(num_samples * 1000 / sample_rate)
    total_secs, ms = divmod(total_ms, 1000)
    mins, secs = divmod(total_secs, 60)
    if mins > 0:
        return f"{mins}m {secs}.{ms}s"
    return f"{secs}.{ms}s"


def describe_sample(
    sample_file: SampleFile,
    buffers: Optional[SampleBuffers],
    original_sample_rate: float,
) -> str:
    """One line summary of the sample, or an empty string when there is nothing loaded."""
    if buffers is None or not buffers.has_samples or sample_file.empty:
        return ""
    layout = "stereo" if buffers.num_channels == 2 else "mono"
    return (
        f"{extract_filename(sample_file.original_file_path)} @ {int(original_sample_rate)} | "
        f"{sample_file.file_size} bytes - {layout} - {buffers.num_samples} "
        f"[{format_duration(buffers.sample_rate, buffers.num_samples)}]"
    )