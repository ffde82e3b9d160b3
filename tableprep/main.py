"""CLI entry point for the dataset-preparation pipeline."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:] when None).

    Returns:
        Parsed namespace with input_file, config, target, output_dir and
        verbose.
    """
    parser = argparse.ArgumentParser(
        description="Prepare a CSV/JSON dataset for machine learning: clean it, "
        "engineer features, and write the cleaned data plus an audit report.",
    )
    parser.add_argument(
        "input_file",
        help="Path to the CSV or JSON file to process.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON file with pipeline options (camelCase keys).",
    )
    parser.add_argument(
        "--target",
        default=None,
        help="Target column; overrides targetColumn from the config file.",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Output directory for the cleaned data and reports (default: output).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log pipeline progress.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Run the pipeline over one file and write its artifacts.

    Args:
        argv: Optional argument list for testing; uses sys.argv when None.
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Validate that the input file exists early, before heavy imports.
    if not os.path.isfile(args.input_file):
        print(f"Error: file not found - {args.input_file}", file=sys.stderr)
        sys.exit(1)

    try:
        from tableprep.config import PipelineConfiguration
        from tableprep.pipeline import run_pipeline
        from tableprep.readiness import check_ml_readiness
        from tableprep.report_generator import (
            export_pipeline_json,
            generate_audit_report,
            generate_pipeline_config,
            generate_report,
        )
        from tableprep.table_io import load_table, write_csv

        # 1. Configuration
        if args.config:
            config = PipelineConfiguration.from_json_file(args.config)
        else:
            config = PipelineConfiguration()
        if args.target is not None:
            config = dataclasses.replace(config, target_column=args.target)

        # 2. Load
        loaded = load_table(args.input_file)
        if loaded["error"]:
            print(f"Error: {loaded['error']}", file=sys.stderr)
            sys.exit(1)
        table = loaded["table"]

        # 3. Run the pipeline
        result = run_pipeline(table, config)
        target = (
            result.column_mapping.get(config.target_column, config.target_column)
            if config.target_column
            else None
        )

        # 4. Write artifacts
        os.makedirs(args.output_dir, exist_ok=True)
        stem = os.path.splitext(os.path.basename(args.input_file))[0]
        data_path = write_csv(result.table, os.path.join(args.output_dir, f"cleaned_{stem}.csv"))

        readiness = check_ml_readiness(result.table, result.statistics, target)
        audit = generate_audit_report(table, result.table, result.logs, target)
        report_path = generate_report(
            audit,
            args.output_dir,
            statistics=result.statistics,
            readiness=readiness,
            model=result.model,
        )
        pipeline = generate_pipeline_config(result.logs, target, scaler=result.scaler)
        config_path = os.path.join(args.output_dir, "pipeline_config.json")
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(export_pipeline_json(pipeline))

        # 5. Summary
        print(f"Cleaned data saved to: {data_path}")
        print(f"Report saved to: {report_path}")
        print(f"Pipeline config saved to: {config_path}")
        print(
            f"ML readiness score: {readiness.score}/100 "
            f"({'ready' if readiness.is_ready else 'not ready'})"
        )
        if result.failed_stage:
            print(f"Error: pipeline stopped at stage '{result.failed_stage}'", file=sys.stderr)
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        sys.exit(130)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
