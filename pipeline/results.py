"""
pipeline/results.py

Text rendering, summary and export of a finished timeline.
"""

from __future__ import annotations

import io
import logging
import os
from typing import Iterable, TextIO

import numpy as np
import pandas as pd

from core.frames import TimeSlot

log = logging.getLogger(__name__)

DEFAULT_NAME_WIDTH = 40
ELLIPSIS = "....."
MIN_NAME_WIDTH = len(ELLIPSIS)


def format_function_name(name: str, width: int = DEFAULT_NAME_WIDTH) -> str:
    """Truncates names longer than `width`, keeping the total length at `width`."""
    if width < MIN_NAME_WIDTH:
        raise ValueError(f"Name width must be at least {MIN_NAME_WIDTH}, got {width}")
    if len(name) <= width:
        return name
    return name[:width - len(ELLIPSIS)] + ELLIPSIS


def format_slot(slot: TimeSlot, name_width: int = DEFAULT_NAME_WIDTH) -> str:
    lines = [f"Timestamp: {slot.bucket_second:10d}"]
    for fc in slot.top_functions:
        name = format_function_name(fc.function, name_width)
        lines.append(f"    {name:>{name_width}} :{fc.count:4d} [{fc.percentage:5.2f}%]")
    return "\n".join(lines)


def render_timeline(timeline: Iterable[TimeSlot], stream: TextIO, name_width: int = DEFAULT_NAME_WIDTH) -> None:
    """Writes one block per slot, each preceded by a blank line."""
    for slot in timeline:
        stream.write("\n" + format_slot(slot, name_width) + "\n")


def format_timeline(timeline: Iterable[TimeSlot], name_width: int = DEFAULT_NAME_WIDTH) -> str:
    buffer = io.StringIO()
    render_timeline(timeline, buffer, name_width)
    return buffer.getvalue()


class TimelineReport:
    """
    Wraps a finished timeline and produces the text report, a summary and tabular exports.
    """

    # ------------------------------------------------------------------ #
    # construction
    # ------------------------------------------------------------------ #
    def __init__(self, timeline: list[TimeSlot], name_width: int = DEFAULT_NAME_WIDTH,
                 leaf_totals: dict[str, int] | None = None) -> None:
        self.timeline    = list(timeline)
        self.name_width  = name_width
        # samples per leaf over the whole capture; the ranked rows only hold each slot's top N
        self.leaf_totals = dict(leaf_totals) if leaf_totals is not None else None
        self.metrics     = self._calculate_metrics()

    # ------------------------------------------------------------------ #
    # tables
    # ------------------------------------------------------------------ #
    def to_dataframe(self) -> pd.DataFrame:
        """One row per ranked function per slot; padding entries are left out."""
        columns = ["bucket_second", "sample_count", "rank", "function", "count", "percentage"]
        rows = [
            {
                "bucket_second": slot.bucket_second,
                "sample_count":  slot.sample_count,
                "rank":          rank,
                "function":      fc.function,
                "count":         fc.count,
                "percentage":    fc.percentage,
            }
            for slot in self.timeline
            for rank, fc in enumerate(slot.top_functions, start=1)
            if not fc.is_empty
        ]
        return pd.DataFrame(rows, columns=columns)

    def _slot_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"bucket_second": [s.bucket_second for s in self.timeline],
             "sample_count":  [s.sample_count for s in self.timeline]},
        )

    # ------------------------------------------------------------------ #
    # metrics
    # ------------------------------------------------------------------ #
    def _calculate_metrics(self) -> dict | None:
        if not self.timeline:
            log.warning("Timeline is empty – metrics unavailable.")
            return None

        slots = self._slot_frame()
        busiest = slots.loc[slots["sample_count"].idxmax()]

        hottest_name, hottest_count = None, None
        if self.leaf_totals:
            # ties resolved alphabetically: sort by name first, then a stable sort by count
            totals = pd.Series(self.leaf_totals, dtype="int64").sort_index()
            totals = totals.sort_values(ascending=False, kind="mergesort")
            hottest_name, hottest_count = totals.index[0], int(totals.iloc[0])

        return {
            "Time Slots":          len(slots),
            "Total Samples":       int(slots["sample_count"].sum()),
            "Mean Samples/Slot":   float(slots["sample_count"].mean()),
            "P90 Samples/Slot":    float(np.percentile(slots["sample_count"], 90)),
            "Busiest Second":      int(busiest["bucket_second"]),
            "Busiest Samples":     int(busiest["sample_count"]),
            "Hottest Leaf":        hottest_name,
            "Hottest Leaf Samples": hottest_count,
        }

    def get_summary_string(self) -> str:
        if not self.metrics:
            return "No metrics to display."

        m = self.metrics
        hottest = "n/a"
        if m["Hottest Leaf"] is not None:
            hottest = format_function_name(m["Hottest Leaf"], self.name_width)
        hottest_count = m["Hottest Leaf Samples"]
        hottest_count = f"{hottest_count:>12,}" if hottest_count is not None else f"{'n/a':>12}"

        summary = []
        summary.append("--- Timeline Summary ---")
        summary.append(f"{'Time Slots':<24} {m['Time Slots']:>12}")
        summary.append(f"{'Total Samples':<24} {m['Total Samples']:>12,}")
        summary.append(f"{'Mean Samples/Slot':<24} {m['Mean Samples/Slot']:>12.2f}")
        summary.append(f"{'P90 Samples/Slot':<24} {m['P90 Samples/Slot']:>12.2f}")
        summary.append(f"{'Busiest Second':<24} {m['Busiest Second']:>12}")
        summary.append(f"{'Busiest Samples':<24} {m['Busiest Samples']:>12,}")
        summary.append(f"{'Hottest Leaf':<24} {hottest}")
        summary.append(f"{'Hottest Leaf Samples':<24} {hottest_count}")
        summary.append("--------------------------------------------")
        return "\n".join(summary)

    # ------------------------------------------------------------------ #
    # output
    # ------------------------------------------------------------------ #
    def get_report_string(self) -> str:
        return format_timeline(self.timeline, self.name_width)

    def write(self, stream: TextIO) -> None:
        render_timeline(self.timeline, stream, self.name_width)

    def print_report(self):
        print(self.get_report_string(), end="")

    def print_summary(self):
        print("\n" + self.get_summary_string())

    def save_to_csv(self, file_path: str) -> None:
        output_dir = os.path.dirname(file_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        self.to_dataframe().to_csv(file_path, index=False)
        log.info(f"Timeline table saved to '{file_path}'")
