#!/usr/bin/env python3
"""
billing_export.py

Billing report exporter (one CLI).

Commands:
  export <kind>     fetch payloads from --source, build the pivot and save
                    the workbook/memo under output/xlsx or output/pdf
  kinds             list the report kinds
  periods <labels>  parse and sort period labels (quick sanity check)
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from billing_core.config import ACCRUAL_THRESHOLD, DEFAULT_OUTPUT_DIR, TREND_WINDOW
from billing_core.errors import ExportError, FetchFailure
from billing_core.export import REPORT_KINDS, BillExporter
from billing_core.periods import format_period, parse_period, sorted_periods
from billing_core.sources import FileSource


def setup_logging(base_dir: Path) -> Path:
    logs_dir = base_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = logs_dir / f"billing_export_{stamp}.log"

    root = logging.getLogger()
    root.setLevel(logging.INFO)

    # avoid duplicate handlers if imported/run twice in one process
    if not root.handlers:
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

        fh = logging.FileHandler(str(log_path), encoding="utf-8")
        fh.setLevel(logging.INFO)
        fh.setFormatter(fmt)

        sh = logging.StreamHandler()
        sh.setLevel(logging.INFO)
        sh.setFormatter(fmt)

        root.addHandler(fh)
        root.addHandler(sh)

    logging.info("Logging started: %s", log_path)
    return log_path


def period_arg(value: str) -> str:
    key = parse_period(value)
    if key is None:
        raise argparse.ArgumentTypeError(f"not a period: {value!r} (use Mon-YYYY or YYYY-MM)")
    return format_period(key, "iso")


def window_arg(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a whole number: {value!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError(f"window must be 0 or more: {n}")
    return n


def decimal_arg(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None


def run_export(args: argparse.Namespace) -> int:
    params = {
        "from": args.date_from,
        "to": args.date_to,
        "period": args.period,
        "window": args.window,
        "accrual_threshold": args.accrual_threshold,
    }
    try:
        source_dir = Path(args.source)
        if not source_dir.is_dir():
            raise FetchFailure(f"Source folder not found: {args.source}", args.kind)
        exporter = BillExporter(FileSource(source_dir), output_dir=args.out)
        run = asyncio.run(exporter.export(args.kind, params, groups=args.group or None))
    except ExportError as exc:
        print(f"{exc.user_message} {exc}", file=sys.stderr)
        return 1

    print(f"Saved: {run.output_path}")
    print(f"Records: {run.records} (fetched {run.fetched}, dropped {run.dropped})")
    if run.layout is not None:
        print(f"Pages: {run.layout.page_count} (signatures on page {run.layout.signature_page})")
    return 0


def run_kinds() -> int:
    for name, kind in REPORT_KINDS.items():
        print(f"{name:<24} {kind.backend:<5} {kind.label_header:<26} {kind.title}")
    return 0


def run_periods(labels: List[str]) -> int:
    keys = []
    for label in labels:
        key = parse_period(label)
        if key is None:
            print(f"  dropped: {label!r}")
            continue
        keys.append(key)
    for key in sorted_periods(set(keys)):
        print(f"{format_period(key, 'label'):<10} {format_period(key, 'compact'):<8} {format_period(key, 'full')}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Billing pivot / memo exporter.")
    sub = p.add_subparsers(dest="cmd", required=True)

    ex = sub.add_parser("export", help="Build one report from payload files.")
    ex.add_argument("kind", choices=list(REPORT_KINDS), help="Report kind")
    ex.add_argument("--source", required=True, help="Folder with <kind>.json / <kind>.csv payloads")
    ex.add_argument("--out", default=DEFAULT_OUTPUT_DIR, help="Output folder (xlsx/, pdf/, logs/ go under it)")
    ex.add_argument("--group", action="append", default=[],
                    help="Fetch <kind>.<group> payloads (repeatable; fetched together)")
    ex.add_argument("--from", dest="date_from", type=period_arg, default=None, help="First period (inclusive)")
    ex.add_argument("--to", dest="date_to", type=period_arg, default=None, help="Last period (inclusive)")
    ex.add_argument("--period", type=period_arg, default=None,
                    help="Memo bill month (default: the month before today)")
    ex.add_argument("--window", type=window_arg, default=TREND_WINDOW, help="Trend window size (0 for none)")
    ex.add_argument("--accrual-threshold", type=decimal_arg, default=ACCRUAL_THRESHOLD,
                    help="Unbilled amounts above this count as accrued")

    sub.add_parser("kinds", help="List report kinds.")

    pp = sub.add_parser("periods", help="Parse and sort period labels.")
    pp.add_argument("labels", nargs="+")

    args = p.parse_args(argv)
    setup_logging(Path(getattr(args, "out", DEFAULT_OUTPUT_DIR)))

    if args.cmd == "export":
        return run_export(args)
    if args.cmd == "kinds":
        return run_kinds()
    if args.cmd == "periods":
        return run_periods(args.labels)
    raise ValueError(f"Unknown command: {args.cmd}")


if __name__ == "__main__":
    sys.exit(main())
