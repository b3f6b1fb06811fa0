from __future__ import annotations

from bisect import bisect_right
from fractions import Fraction
from math import floor, isfinite
from typing import Sequence

from layer_midi.model.types import TempoChange

_US_PER_SECOND = 1_000_000


def _exact(value: float | Fraction | int) -> Fraction:
    return value if isinstance(value, Fraction) else Fraction(value)


class TickQuantizer:
    """Seconds -> ticks through a piecewise-constant tempo map.

    Beat positions of every breakpoint are precomputed exactly (Fractions),
    so a tick is always derived from absolute time and never accumulates
    rounding error from earlier events.
    """

    def __init__(self, tempo_map: Sequence[TempoChange], resolution: int) -> None:
        if not tempo_map:
            raise ValueError("tempo map is empty")
        if resolution <= 0:
            raise ValueError("resolution must be > 0")
        self.resolution = int(resolution)
        self._times = [_exact(t.time) for t in tempo_map]
        self._tempos = [int(t.us_per_quarter) for t in tempo_map]

        self._beats: list[Fraction] = [Fraction(0)]
        for i in range(1, len(self._times)):
            span = self._times[i] - self._times[i - 1]
            self._beats.append(self._beats[-1] + span * _US_PER_SECOND / self._tempos[i - 1])

    def beats(self, time: float | Fraction) -> Fraction:
        t = _exact(time)
        if t <= self._times[0]:
            return Fraction(0)
        i = bisect_right(self._times, t) - 1
        return self._beats[i] + (t - self._times[i]) * _US_PER_SECOND / self._tempos[i]

    def exact_ticks(self, time: float | Fraction) -> Fraction:
        return self.beats(time) * self.resolution

    def quantize(self, time: float | Fraction) -> int:
        if isinstance(time, float) and not isfinite(time):
            return 0
        # round half up keeps the mapping monotonic
        return max(0, int(floor(self.exact_ticks(time) + Fraction(1, 2))))

    def error(self, time: float | Fraction) -> Fraction:
        """Signed rounding error of ``quantize(time)`` in ticks."""
        return self.quantize(time) - self.exact_ticks(time)


def quantize(time: float | Fraction, tempo_map: Sequence[TempoChange], resolution: int) -> int:
    return TickQuantizer(tempo_map, resolution).quantize(time)
