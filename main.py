# main.py

import argparse
import sys

from core.errors import ConfigError
from pipeline.engine import TimelineEngine
from pipeline.results import TimelineReport


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description='Summarise a perf script capture as the hottest leaf functions per second'
    )
    ap.add_argument('capture', help="perf script text file, or '-' for standard input")
    ap.add_argument('--config', default='config.yaml',
                    help='YAML config file (default: config.yaml)')
    ap.add_argument('--top-n', type=int, default=None,
                    help='Number of leaf functions ranked per second')
    ap.add_argument('--tie-break', choices=['name', 'first_seen'], default=None,
                    help='Ordering among functions with equal counts')
    ap.add_argument('--empty-stack', choices=['skip', 'unknown', 'error'], default=None,
                    help='Handling of frames with no stack entries')
    ap.add_argument('--csv', default=None,
                    help='Also write the ranked table to this CSV file')
    ap.add_argument('--summary', action='store_true',
                    help='Print a summary after the timeline')
    ap.add_argument('--progress', action='store_true',
                    help='Show a progress bar while aggregating')
    return ap.parse_args(argv)


def main(argv=None) -> int:
    """
    Main execution function for the timeline tool.
    """
    args = parse_args(argv)

    try:
        engine = TimelineEngine(args.config, overrides={
            'top_n': args.top_n,
            'tie_break': args.tie_break,
            'empty_stack_policy': args.empty_stack,
        })
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.progress:
        engine.show_progress = True

    source = sys.stdin.buffer if args.capture == '-' else args.capture
    outcome = engine.run(source)
    if not outcome.ok:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1

    report = TimelineReport(outcome.timeline, name_width=engine.name_width, leaf_totals=outcome.leaf_totals)
    report.print_report()

    if args.summary:
        report.print_summary()

    if args.csv:
        report.save_to_csv(args.csv)
        print(f"Timeline table saved to '{args.csv}'")

    return 0


if __name__ == '__main__':
    sys.exit(main())
