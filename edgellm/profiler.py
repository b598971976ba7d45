"""Wall-clock profiling of named sections."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


def _ratio(num: float, den: float) -> float:
    if den:
        return num / den
    if num:
        return float("inf")
    return float("nan")


class Profiler:
    """Accumulates time (in microseconds), call counts and FLOPs per section."""

    def __init__(self, enabled: bool = False, for_demo: bool = False) -> None:
        self.enabled = enabled
        self.for_demo = for_demo
        self._start_times: Dict[str, int] = {}
        self.flops: Dict[str, int] = {}
        self.durations: Dict[str, int] = {}
        self.counts: Dict[str, int] = {}

    def start(self, section: str, flops: Optional[int] = None) -> None:
        """Begin timing ``section``; optionally add to its operation count."""
        self._start_times[section] = time.perf_counter_ns()
        if flops is not None:
            self.flops[section] = self.flops.get(section, 0) + int(flops)

    def stop(self, section: str) -> None:
        """End timing ``section`` and add the elapsed microseconds."""
        end = time.perf_counter_ns()
        try:
            begin = self._start_times[section]
        except KeyError:
            raise KeyError(f"section {section!r} was never started") from None
        self.durations[section] = self.durations.get(section, 0) + (end - begin) // 1000
        self.counts[section] = self.counts.get(section, 0) + 1

    @contextmanager
    def section(self, name: str, flops: Optional[int] = None) -> Iterator[None]:
        """Time the enclosed block as ``name``."""
        self.start(name, flops)
        try:
            yield
        finally:
            self.stop(name)

    def reset(self) -> None:
        self._start_times.clear()
        self.durations.clear()
        self.counts.clear()
        self.flops.clear()

    def _format(self) -> str:
        lines = []
        if self.for_demo:
            for name in sorted(self.durations):
                seconds = self.durations[name] / 1_000_000
                count = self.counts[name]
                lines.append(
                    f"{name}, Total time: {seconds:.1f} s, "
                    f"{_ratio(seconds, count) * 1000:.1f} ms/token, "
                    f"{_ratio(count, seconds):.1f} token/s, {count} tokens"
                )
        else:
            lines.append("Section, Total time(us), Average time(us), Count, GOPs:")
            for name in sorted(self.durations):
                total = self.durations[name]
                count = self.counts[name]
                row = f"{name}, {total}, {total // count}, {count}, "
                if name in self.flops:
                    row += f"{_ratio(float(self.flops[name]), float(total)) / 1000.0:f}"
                else:
                    row += "N/A"
                lines.append(row)
        return "\n".join(lines)

    def report_internal(self) -> str:
        """Print the report and return its text."""
        text = self._format()
        print(text)
        return text

    def report(self) -> Optional[str]:
        """Print the report when profiling is enabled."""
        if not self.enabled:
            return None
        return self.report_internal()


_INSTANCE = Profiler()


def get_instance() -> Profiler:
    """The process-wide profiler."""
    return _INSTANCE