# tools/inspect_script.py
import os
import sys

import pandas as pd

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

from core.errors import PerfTimelineError
from parsing.perf_script import parse_perf_script


def frames_to_dataframe(frames) -> pd.DataFrame:
    """One row per frame: process, pid, cpu, timestamp, stack depth and leaf function."""
    columns = ['timestamp', 'process_name', 'pid', 'cpu', 'event', 'depth', 'leaf']
    rows = [
        {
            'timestamp': f.timestamp,
            'process_name': f.process_name,
            'pid': f.pid,
            'cpu': f.cpu,
            'event': f.event,
            'depth': len(f.stack),
            'leaf': f.leaf.function if f.leaf else None,
        }
        for f in frames
    ]
    return pd.DataFrame(rows, columns=columns)


def inspect_capture(filepath):
    """
    Parses a capture and prints what was found in it: frame count, time span,
    processes and stack depths. Returns the frame table, or None on failure.
    """
    print(f"--- Inspecting Capture: {filepath} ---")

    if not os.path.exists(filepath):
        print(f"!!! ERROR: File not found at '{filepath}'. Please check the path. !!!")
        return None

    try:
        frames = parse_perf_script(filepath)
    except PerfTimelineError as e:
        print(f"\n!!! The capture could not be parsed: {e} !!!")
        return None

    df = frames_to_dataframe(frames)
    print(f"\n[1] Frames parsed: {len(df):,}")
    if df.empty:
        return df

    start, end = df['timestamp'].min(), df['timestamp'].max()
    print(f"\n[2] Time span: {start:.6f} - {end:.6f} ({end - start:.3f}s)")
    print("\n[3] Frames per process:")
    print(df.groupby(['process_name', 'pid']).size().to_string())
    print(f"\n[4] Stack depth: min {df['depth'].min()}, max {df['depth'].max()}, mean {df['depth'].mean():.1f}")
    empty = int((df['depth'] == 0).sum())
    if empty:
        print(f"    {empty:,} frames have an empty stack.")
    print("\n[5] First 3 frames:")
    print(df.head(3).to_string(index=False))
    return df


if __name__ == "__main__":
    if len(sys.argv) > 1:
        file_to_check = sys.argv[1]
    else:
        file_to_check = 'perf.script'
        print(f"No file provided. Using default: {file_to_check}")

    inspect_capture(file_to_check)
