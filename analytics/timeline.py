# analytics/timeline.py

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator

from tqdm import tqdm

from core.errors import ConfigError, EmptyStackError
from core.frames import FunctionCount, SampleFrame, TimeSlot
from core.tie_breakers import BaseTieBreaker, get_tie_breaker

log = logging.getLogger(__name__)

EMPTY_STACK_POLICIES = ("skip", "unknown", "error")
UNKNOWN_FUNCTION = "[unknown]"


@dataclass(frozen=True)
class TimelineParams:
    """
    Aggregation settings.

    top_n:              number of ranked leaf functions per slot
    bucket_seconds:     width of a slot; 1 gives one slot per whole second
    tie_break:          'name' (alphabetical among equal counts) or 'first_seen'
    empty_stack_policy: what to do with a frame that has no stack entries:
                        'skip' drops it, 'unknown' counts it as '[unknown]',
                        'error' raises EmptyStackError
    """
    top_n: int = 5
    bucket_seconds: int = 1
    tie_break: str = "name"
    empty_stack_policy: str = "skip"

    def __post_init__(self):
        for name in ("top_n", "bucket_seconds"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"'{name}' must be a positive integer, got {value!r}")
        if self.empty_stack_policy not in EMPTY_STACK_POLICIES:
            raise ConfigError(
                f"'empty_stack_policy' must be one of {', '.join(EMPTY_STACK_POLICIES)}, got {self.empty_stack_policy!r}"
            )
        try:
            if not isinstance(self.tie_break, str):
                raise ValueError(f"'tie_break' must be a string, got {self.tie_break!r}")
            get_tie_breaker(self.tie_break)
        except ValueError as e:
            raise ConfigError(str(e)) from None

    @classmethod
    def from_config(cls, config: dict | None) -> "TimelineParams":
        """Builds params from the 'timeline' section of a loaded config.yaml."""
        section = (config or {}).get("timeline") or {}
        if not isinstance(section, dict):
            raise ConfigError("'timeline' section of the config must be a mapping")
        known = {k: v for k, v in section.items() if k in cls.__dataclass_fields__}
        unknown = set(section) - set(known)
        if unknown:
            log.warning(f"Ignoring unknown timeline settings: {', '.join(sorted(unknown))}")
        return cls(**known)


def calculate_top_n(tally: dict[str, int], bucket_second: int, sample_count: int,
                    top_n: int, tie_breaker: BaseTieBreaker) -> TimeSlot:
    """
    N-wide insertion selection over the bucket's leaf-function tally.
    Unfilled ranks stay as empty FunctionCount entries, so the result always has top_n items.
    """
    names = [""] * top_n
    counts = [0] * top_n

    for name, count in tally.items():
        for i in range(top_n):
            if tie_breaker.outranks(name, count, names[i], counts[i]):
                # shift the holder and everything below it down one rank
                names.insert(i, name)
                counts.insert(i, count)
                names.pop()
                counts.pop()
                break

    top_functions = tuple(
        FunctionCount(
            function=names[i],
            count=counts[i],
            percentage=100 * counts[i] / sample_count if sample_count else 0.0,
        )
        for i in range(top_n)
    )
    return TimeSlot(bucket_second=bucket_second, sample_count=sample_count, top_functions=top_functions)


class TimelineAggregator:
    """
    Buckets frames by whole second (or `bucket_seconds`) in input order and ranks
    the leaf functions of each bucket when it closes.

    Frames are fed one at a time with add(); a slot is returned whenever a frame
    falls outside the open bucket. flush() closes the last bucket.
    """
    def __init__(self, params: TimelineParams | None = None):
        self.params = params or TimelineParams()
        self.tie_breaker = get_tie_breaker(self.params.tie_break)
        self.skipped_frames = 0
        # whole-capture tally, kept across buckets
        self.leaf_totals: dict[str, int] = {}
        self._reset_bucket()

    def _reset_bucket(self):
        self.current_second: int | None = None
        self.sample_count = 0
        self.tally: dict[str, int] = {}

    def bucket_of(self, timestamp: float) -> int:
        width = self.params.bucket_seconds
        return math.floor(timestamp / width) * width

    def _leaf_function(self, frame: SampleFrame) -> str | None:
        if frame.stack:
            return frame.stack[0].function

        policy = self.params.empty_stack_policy
        if policy == "error":
            raise EmptyStackError(frame)
        if policy == "unknown":
            return UNKNOWN_FUNCTION
        self.skipped_frames += 1
        log.warning(f"Skipping frame with empty stack: {frame.process_name} ({frame.pid}) at {frame.timestamp:.6f}")
        return None

    def add(self, frame: SampleFrame) -> TimeSlot | None:
        leaf = self._leaf_function(frame)
        if leaf is None:
            return None

        bucket = self.bucket_of(frame.timestamp)
        closed = None
        if self.current_second is not None and bucket != self.current_second:
            if bucket < self.current_second:
                log.warning(f"Timestamp {frame.timestamp:.6f} is earlier than the open bucket {self.current_second}; "
                            f"input is expected to be in time order.")
            closed = self._close_bucket()

        if self.current_second is None:
            self.current_second = bucket
        self.sample_count += 1
        self.tally[leaf] = self.tally.get(leaf, 0) + 1
        self.leaf_totals[leaf] = self.leaf_totals.get(leaf, 0) + 1
        return closed

    def flush(self) -> TimeSlot | None:
        if self.current_second is None:
            return None
        return self._close_bucket()

    def _close_bucket(self) -> TimeSlot:
        slot = calculate_top_n(self.tally, self.current_second, self.sample_count,
                               self.params.top_n, self.tie_breaker)
        log.debug(f"Closed bucket {slot.bucket_second} with {slot.sample_count} samples.")
        self._reset_bucket()
        return slot


def iter_time_slots(frames: Iterable[SampleFrame], params: TimelineParams | None = None,
                    show_progress: bool = False,
                    aggregator: TimelineAggregator | None = None) -> Iterator[TimeSlot]:
    """
    Yields slots as their buckets close. `frames` may be a lazy, single-pass iterator.
    Pass an `aggregator` to read its leaf_totals afterwards; `params` is then ignored.
    """
    if aggregator is None:
        aggregator = TimelineAggregator(params)
    for frame in tqdm(frames, desc="Aggregating frames", unit="frame", disable=not show_progress):
        slot = aggregator.add(frame)
        if slot is not None:
            yield slot

    last = aggregator.flush()
    if last is not None:
        yield last

    if aggregator.skipped_frames:
        log.warning(f"Skipped {aggregator.skipped_frames:,} frames with empty stacks.")


def build_timeline(frames: Iterable[SampleFrame], params: TimelineParams | None = None,
                   show_progress: bool = False,
                   aggregator: TimelineAggregator | None = None) -> list[TimeSlot]:
    return list(iter_time_slots(frames, params, show_progress, aggregator))
