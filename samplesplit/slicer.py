"""Playback of a slice of a sample, with optional linear cross fading."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from typing import Optional

_log = logging.getLogger(__name__)


def _read(buffer: Sequence[float], index: int) -> float:
    if 0 <= index < len(buffer):
        return float(buffer[index])
    return 0.0


def _walk(buffer: Sequence[float], index: int, reverse: bool, count: int) -> list[float]:
    step = -1 if reverse else 1
    return [_read(buffer, index + step * i) for i in range(count)]


class LinearCrossFader:
    """Linear cross fader from 0 to a buffer, or from a buffer to 0.

    Call one of the ``xfade_*`` methods, then drain values with ``next`` while
    ``has_next`` is true.
    """

    def __init__(self, num_samples: int):
        if num_samples < 2:
            raise ValueError("a cross fader needs at least 2 samples")
        self._num_samples = num_samples
        self._factor = 1.0 / (num_samples - 1)
        self._buffer = [0.0] * num_samples
        self._fade_to_0 = False
        self._current = num_samples

    @property
    def num_samples(self) -> int:
        return self._num_samples

    def reset(self) -> None:
        """Return to the idle state."""
        self._fade_to_0 = False
        self._current = self._num_samples

    def _pending(self, i: int, previous: list[float]) -> float:
        current = self._current + i
        return previous[current] if current < self._num_samples else previous[-1]

    def xfade_from_0_to_buffer(self, buffer: Sequence[float], index: int, reverse: bool) -> None:
        """Fade in the samples of ``buffer`` read from ``index`` (backwards when ``reverse``).

        When a fade is already in progress, fade from what remains of it instead of from 0.
        """
        n = self._num_samples
        source = _walk(buffer, index, reverse, n)
        if self._current < n:
            previous = list(self._buffer)
            self._buffer = [
                self._factor * i * source[i] + (1 - self._factor * i) * self._pending(i, previous)
                for i in range(n)
            ]
        else:
            self._buffer = [self._factor * i * source[i] for i in range(n)]
        self._fade_to_0 = False
        self._current = 0

    def xfade_to_0_from_buffer(self, buffer: Sequence[float], index: int, reverse: bool) -> None:
        """Fade out the samples of ``buffer`` read from ``index`` (backwards when ``reverse``).

        When a fade is already in progress, blend from what remains of it.
        """
        n = self._num_samples
        source = _walk(buffer, index, reverse, n)
        faded = [self._factor * (n - 1 - i) * source[i] for i in range(n)]
        if self._current < n:
            previous = list(self._buffer)
            self._buffer = [
                self._factor * i * faded[i] + (1 - self._factor * i) * self._pending(i, previous)
                for i in range(n)
            ]
        else:
            self._buffer = faded
        self._fade_to_0 = True
        self._current = 0

    def has_next(self) -> bool:
        return self._current < self._num_samples

    def next(self) -> float:
        if not self.has_next():
            raise RuntimeError("cross fader has no more samples")
        value = self._buffer[self._current]
        self._current += 1
        return value

    @property
    def is_fading_to_0(self) -> bool:
        return self._fade_to_0 and self.has_next()

    @property
    def is_done_fading_to_0(self) -> bool:
        return self._fade_to_0 and not self.has_next()


class Slicer:
    """Plays ``buffer[start:end]`` once, forwards or in reverse, cross fading when enabled.

    Looping is left to the caller: call ``start`` again once ``has_next`` is false.
    """

    _NOT_PLAYING = -2

    def __init__(self, num_xfade_samples: int):
        self._num_xfade_samples = num_xfade_samples
        self._start = -1
        self._end = -1
        self._buffer: Optional[Sequence[float]] = None
        self._current = self._NOT_PLAYING
        self._reverse = False
        self._xfade_enabled = True
        self._xfader = LinearCrossFader(num_xfade_samples)

    def reset(self, buffer: Sequence[float], start: int, end: int) -> None:
        """Set the slice to ``[start, end)`` of ``buffer``."""
        if start < 0 or end < 0 or start >= end:
            raise ValueError(f"invalid slice [{start}, {end})")
        if end > len(buffer):
            raise ValueError(f"slice end {end} is past the buffer ({len(buffer)} samples)")
        self._start = start
        self._end = end
        self._buffer = buffer
        self._maybe_disable_cross_fader()
        if self._current != self._NOT_PLAYING:
            self._current = min(max(self._current, self._start), self._end - 1)

    @property
    def start_idx(self) -> int:
        return self._start

    @property
    def end_idx(self) -> int:
        return self._end

    @property
    def cross_fade_enabled(self) -> bool:
        return self._xfade_enabled

    def cross_fade(self, enabled: bool) -> None:
        """Enable or disable cross fading when starting, stopping and reaching the end."""
        self._xfade_enabled = enabled
        self._maybe_disable_cross_fader()
        if self._xfade_enabled:
            self._xfader.reset()

    @property
    def reverse(self) -> bool:
        return self._reverse

    @reverse.setter
    def reverse(self, value: bool) -> None:
        self._reverse = value

    @property
    def num_samples(self) -> int:
        """Total number of samples in the slice."""
        return self._end - self._start

    @property
    def num_samples_played(self) -> int:
        if self._current == self._NOT_PLAYING:
            return 0
        return self._current - (self._end - 1 if self._reverse else self._start)

    def start(self) -> None:
        """Position at the beginning of the slice (its end when reversed)."""
        if self._buffer is None:
            raise RuntimeError("reset must be called before start")
        self._current = self._end - 1 if self._reverse else self._start
        if self._xfade_enabled:
            self._xfader.xfade_from_0_to_buffer(self._buffer, self._current, self._reverse)

    def request_stop(self) -> bool:
        """Ask to stop; with cross fading the slice keeps fading out for a while.

        Returns ``True`` if playback stopped right away.
        """
        if self._current != self._NOT_PLAYING:
            if self._xfade_enabled:
                if not self._xfader.is_fading_to_0:
                    self._xfader.xfade_to_0_from_buffer(self._buffer, self._current, self._reverse)
            else:
                self._current = self._NOT_PLAYING
        return self._current == self._NOT_PLAYING

    def hard_stop(self) -> None:
        """Stop immediately."""
        self._current = self._NOT_PLAYING

    def has_next(self) -> bool:
        return self._current != self._NOT_PLAYING

    def next(self) -> float:
        """Return the current sample (cross faded if needed) and advance."""
        if not self.has_next():
            raise RuntimeError("slicer is not playing")
        if self._xfade_enabled and self._xfader.has_next():
            value = self._xfader.next()
        else:
            value = float(self._buffer[self._current])
        self._compute_next()
        return value

    def __iter__(self) -> Iterator[float]:
        while self.has_next():
            yield self.next()

    def _compute_next(self) -> None:
        if self._current == self._NOT_PLAYING:
            return
        n = self._num_xfade_samples
        if self._reverse:
            self._current -= 1
            if self._current < self._start:
                self._current = self._NOT_PLAYING
            elif (
                self._xfade_enabled
                and not self._xfader.is_fading_to_0
                and self._current == self._start + n - 1
            ):
                self._xfader.xfade_to_0_from_buffer(self._buffer, self._current, True)
        else:
            self._current += 1
            if self._current >= self._end:
                self._current = self._NOT_PLAYING
            elif (
                self._xfade_enabled
                and not self._xfader.is_fading_to_0
                and self._current == self._end - n
            ):
                self._xfader.xfade_to_0_from_buffer(self._buffer, self._current, False)

        if self._xfade_enabled and self._xfader.is_done_fading_to_0:
            self._current = self._NOT_PLAYING

    def _maybe_disable_cross_fader(self) -> None:
        if (
            self._start != -1
            and self._end != -1
            and self._xfade_enabled
            and self._end - self._start < self._num_xfade_samples
        ):
            _log.warning("not enough samples... disabling cross fader")
            self._xfade_enabled = False
            self._current = self._NOT_PLAYING