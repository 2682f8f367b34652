# pipeline/engine.py

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import yaml

from analytics.timeline import TimelineAggregator, TimelineParams, build_timeline
from core.errors import ConfigError, PerfTimelineError
from core.frames import TimeSlot
from parsing.perf_script import iter_frames
from pipeline.results import MIN_NAME_WIDTH

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
engine_logger = logging.getLogger(__name__)


def parse_perf_script_timeline(source, params: TimelineParams | None = None, encoding: str = "utf-8",
                               show_progress: bool = False,
                               aggregator: TimelineAggregator | None = None) -> list[TimeSlot]:
    """
    Parses a capture and aggregates it into time slots in one forward pass.
    Raises PerfScriptParseError / PerfScriptReadError / EmptyStackError; nothing
    partial is returned on failure. When `aggregator` is given its params are used
    and its leaf_totals hold whole-capture counts afterwards.
    """
    params = aggregator.params if aggregator is not None else (params or TimelineParams())
    engine_logger.info(f"Building timeline (top {params.top_n}, {params.bucket_seconds}s buckets)...")
    timeline = build_timeline(iter_frames(source, encoding), params, show_progress, aggregator)
    engine_logger.info(f"Timeline complete: {len(timeline)} time slots.")
    return timeline


@dataclass
class TimelineOutcome:
    """Either a finished timeline or the error that stopped it."""
    timeline: list[TimeSlot] | None = None
    error: PerfTimelineError | None = None
    leaf_totals: dict[str, int] | None = None  # samples per leaf over the whole capture

    @property
    def ok(self) -> bool:
        return self.error is None


class TimelineEngine:
    def __init__(self, config_path: str | None = "config.yaml", overrides: dict | None = None):
        self.config = self._load_config(config_path)

        timeline_cfg = self.config.get("timeline") or {}
        if not isinstance(timeline_cfg, dict):
            raise ConfigError("'timeline' section of the config must be a mapping")
        timeline_cfg = dict(timeline_cfg)
        timeline_cfg.update({k: v for k, v in (overrides or {}).items() if v is not None})
        self.params = TimelineParams.from_config({"timeline": timeline_cfg})

        parsing_cfg = self.config.get("parsing") or {}
        report_cfg = self.config.get("report") or {}
        self.encoding = parsing_cfg.get("encoding", "utf-8")
        self.name_width = report_cfg.get("name_width", 40)
        if isinstance(self.name_width, bool) or not isinstance(self.name_width, int) or self.name_width < MIN_NAME_WIDTH:
            raise ConfigError(f"'report.name_width' must be an integer of at least {MIN_NAME_WIDTH}, got {self.name_width!r}")
        self.show_progress = report_cfg.get("show_progress", False)

        self.logger = self._setup_logger()

    def _load_config(self, path: str | None) -> dict:
        if path is None:
            return {}
        if not os.path.exists(path):
            engine_logger.warning(f"Config file not found at {path}. Using defaults.")
            return {}
        try:
            with open(path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse config file {path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
        return config

    def _setup_logger(self):
        """Applies the 'logging' config section: level and an optional log file."""
        logging_cfg = self.config.get("logging") or {}
        root = logging.getLogger()

        level = str(logging_cfg.get("level", "INFO")).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigError(f"Unknown logging level '{level}'")
        root.setLevel(level)

        log_file = logging_cfg.get("log_file")
        if log_file:
            log_dir = os.path.dirname(log_file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir)

            for handler in root.handlers[:]:
                if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_file):
                    root.removeHandler(handler)
                    handler.close()

            handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
            handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
            root.addHandler(handler)

        return engine_logger

    def run(self, source) -> TimelineOutcome:
        """Builds the timeline for `source` (path, stream or iterable of lines)."""
        aggregator = TimelineAggregator(self.params)
        try:
            timeline = parse_perf_script_timeline(source, encoding=self.encoding,
                                                  show_progress=self.show_progress, aggregator=aggregator)
        except PerfTimelineError as e:
            self.logger.error(f"Failed to build timeline: {e}")
            return TimelineOutcome(error=e)
        return TimelineOutcome(timeline=timeline, leaf_totals=dict(aggregator.leaf_totals))
