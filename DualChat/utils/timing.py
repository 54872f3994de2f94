"""
Timing utilities for DualChat.

- ProcessingTimer: wall-clock timer for one discussion session.
- summarize_call_timings / print_timing_summary: per-agent model call
  durations, read from the ``duration_ms`` each agent message carries.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass
class AgentCallStats:
    """Model call durations of one agent across a transcript."""
    agent: str
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def add(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)


def summarize_call_timings(messages: Iterable) -> list[AgentCallStats]:
    """Group timed messages by sender, in order of first appearance."""
    stats: dict[str, AgentCallStats] = {}
    for message in messages:
        if message.duration_ms is None:
            continue
        agent = message.sender.value
        stats.setdefault(agent, AgentCallStats(agent)).add(message.duration_ms)
    return list(stats.values())


def print_timing_summary(messages: Iterable, session_seconds: Optional[float] = None) -> None:
    stats = summarize_call_timings(messages)
    if not stats:
        print("\n⏱ No timed model calls in this chat.")
        return

    print("\n" + "=" * 60)
    print("  ⏱  MODEL CALL TIMING")
    print("=" * 60)
    print(f"  Calls: {sum(s.count for s in stats)}")
    print(f"  Model time: {sum(s.total_ms for s in stats) / 1000:.2f}s")
    if session_seconds is not None:
        print(f"  Last session wall clock: {session_seconds:.2f}s")
    for s in stats:
        print(f"    {s.agent}: {s.count} calls, {s.avg_ms:.0f}ms avg, {s.max_ms:.0f}ms max")
    print("=" * 60 + "\n")


class ProcessingTimer:
    """
    Wall-clock timer for a discussion session.

    Usage:
        timer = ProcessingTimer()
        timer.start()
        ...
        timer.stop()
        timer.elapsed_seconds
    """

    def __init__(self):
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def start(self) -> None:
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self) -> None:
        if self.start_time is not None and self.end_time is None:
            self.end_time = time.perf_counter()

    @property
    def running(self) -> bool:
        return self.start_time is not None and self.end_time is None

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.perf_counter()
        return end - self.start_time
