"""Command line interface.

Usage:
    canre analyze capture.asc [--policy full] [--summary summary.json]
    canre generate-dbc capture.blf output.dbc
    canre batch-process captures/

``analyze`` prints a summary and writes <capture>.stats.json; ``generate-dbc``
writes the detected signals as a DBC file; ``batch-process`` does both for
every capture in a folder, continuing past files that fail.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections import Counter
from typing import List, Optional

from canre.config import ConfigManager, configure_logging
from canre.exceptions import CanReException, ConfigurationError
from canre.services.pipeline import AnalysisPipeline, AnalysisResult
from canre_io.dbc_export import export_dbc
from canre_io.log_reader import find_captures, read_capture
from canre_io.report import analysis_summary, export_statistics_json

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog='canre', description="Infer CAN signal layouts from captured traffic")
    p.add_argument("--config", default=None, help="JSON config file (default ~/.canre/config.json)")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    p.add_argument("--policy", choices=('quick', 'full'), default=None, help="Signal detection policy")
    p.add_argument("--optimized", action='store_true', help="Bounded quick scan for large captures")
    p.add_argument("--workers", type=int, default=None, help="Worker threads for per-id stages")
    sub = p.add_subparsers(dest='command', required=True)

    analyze = sub.add_parser('analyze', help="Analyze a capture and export statistics")
    analyze.add_argument("capture", help="Capture file (.csv, .asc, .blf, .log, .trc)")
    analyze.add_argument("--summary", default=None, help="Also write the analysis summary as JSON")

    dbc = sub.add_parser('generate-dbc', help="Generate a DBC file from a capture")
    dbc.add_argument("capture", help="Capture file")
    dbc.add_argument("output", help="Output .dbc path")

    batch = sub.add_parser('batch-process', help="Generate DBC files for every capture in a folder")
    batch.add_argument("folder", help="Folder containing capture files")

    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> ConfigManager:
    config = ConfigManager(args.config)
    if args.policy:
        config.detection.policy = args.policy
    if args.optimized:
        config.detection.optimized = True
    if args.workers is not None:
        config.app_settings.workers = args.workers
    if args.log_level:
        config.app_settings.log_level = args.log_level.upper()
    errors = config.app_settings.validate()
    if errors:
        raise ConfigurationError(f"Invalid command line options: {'; '.join(errors)}",
                                 setting_name='app_settings')
    return config


def _output_path(config: ConfigManager, capture: str, suffix: str) -> str:
    base = os.path.splitext(os.path.basename(capture))[0] + suffix
    directory = config.app_settings.output_dir or os.path.dirname(capture)
    return os.path.join(directory, base)


def analyze_capture(config: ConfigManager, capture: str) -> AnalysisResult:
    frames = read_capture(capture)
    return AnalysisPipeline(config).run(frames)


def print_summary(result: AnalysisResult) -> None:
    print(f"  Loaded {result.total_frames} frames")
    print(f"  Found {len(result.statistics)} unique message IDs")
    for arbitration_id in sorted(result.candidates):
        print(f"    ID 0x{arbitration_id:X}: {len(result.candidates[arbitration_id])} signals")
    print(f"  Total signals detected: {len(result.all_candidates)}")
    if result.classifications:
        print("  Signal classification:")
        for name, count in sorted(Counter(c.value for c in result.classifications.values()).items()):
            print(f"    {name}: {count} signals")
    print(f"  Significant correlations: {len(result.significant_correlations)}")
    for causal in result.causal:
        print(f"    {causal.relationship}")
    print(f"  Clusters: {len(result.clusters)}")


def cmd_analyze(config: ConfigManager, args: argparse.Namespace) -> int:
    print(f"Analyzing {args.capture}...")
    result = analyze_capture(config, args.capture)
    print_summary(result)
    stats_file = export_statistics_json(result.statistics, _output_path(config, args.capture, '.stats.json'))
    print(f"  Statistics exported to: {stats_file}")
    if args.summary:
        with open(args.summary, 'w', encoding='utf-8') as f:
            json.dump(analysis_summary(result), f, indent=2)
        print(f"  Summary written to: {args.summary}")
    return 0


def cmd_generate_dbc(config: ConfigManager, args: argparse.Namespace) -> int:
    print(f"Generating DBC from {args.capture}...")
    result = analyze_capture(config, args.capture)
    export_dbc(result.candidates, result.dlc_by_id, args.output, result.extended_ids)
    print(f"DBC file generated: {args.output}")
    print(f"  Messages: {len(result.candidates)}")
    print(f"  Signals: {len(result.all_candidates)}")
    return 0


def cmd_batch_process(config: ConfigManager, args: argparse.Namespace) -> int:
    captures = find_captures(args.folder)
    print(f"Found {len(captures)} log files in {args.folder}")
    failures = 0
    for capture in captures:
        print(f"Processing: {os.path.basename(capture)}")
        try:
            result = analyze_capture(config, capture)
            dbc_file = export_dbc(result.candidates, result.dlc_by_id, _output_path(config, capture, '.dbc'),
                                  result.extended_ids)
        except CanReException as e:
            failures += 1
            logger.error(f"Failed to process {capture}: {e}")
            print(f"  Error: {e}")
            continue
        print(f"  Messages: {result.total_frames}, IDs: {len(result.statistics)}")
        print(f"  DBC generated: {os.path.basename(dbc_file)}")
    return 1 if failures else 0


COMMANDS = {
    'analyze': cmd_analyze,
    'generate-dbc': cmd_generate_dbc,
    'batch-process': cmd_batch_process,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = build_config(args)
        configure_logging(config.app_settings.log_level)
        return COMMANDS[args.command](config, args)
    except (CanReException, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
