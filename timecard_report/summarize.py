from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

import pandas as pd

from timecard_report.aggregation import (
    DETAIL_VIEW_POLICY,
    AggregationPolicy,
    EmployeeSummary,
    PolicyError,
    aggregate,
    calculate_global_stats,
    counted_total_minutes,
    daily_timeline,
    first_and_last_date,
    summaries_to_frame,
    top_negative,
    top_positive,
)
from timecard_report.config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    configure_logging,
    load_config,
    policy_from_config,
    sheets_from_config,
)
from timecard_report.filters import FilterCriteria, apply_filters
from timecard_report.sheet_reader import (
    WorkbookReadError,
    describe_sheets,
    import_sheets,
    read_workbook,
)
from timecard_report.time_parser import format_date, format_minutes, parse_date


def _date_arg(value: str) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid date '{value}' (use DD/MM/YYYY or YYYY-MM-DD)")
    return parsed


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer '{value}'") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize attendance time differences per employee")
    parser.add_argument("--input", required=True, help="Path to the attendance workbook (.xlsx)")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="YAML report config (policy, sheets)")
    parser.add_argument("--list-sheets", action="store_true", help="Print sheets with their validity and exit")
    parser.add_argument("--sheets", help="Comma-separated sheet names to import (default: config or all sheets)")
    parser.add_argument("--extra-bonus-hours", type=float, help="Hours credited per Hora Extra record")
    parser.add_argument("--atraso-penalty-hours", type=float, help="Hours debited per Atraso record")
    parser.add_argument("--exclude-adjustments", action="store_true", help="Leave Ajuste records out of raw totals")
    parser.add_argument("--ignore-deltas-up-to", type=int, help="Leave out records with |delta| <= N minutes")
    parser.add_argument("--name", default="", help="Employee name substring filter")
    parser.add_argument("--id", dest="employee_id", default="", help="Employee id substring filter")
    parser.add_argument("--classification", default="todas", help="Classification label filter ('todas' = all)")
    parser.add_argument("--date-from", type=_date_arg, help="Start of date range filter (inclusive)")
    parser.add_argument("--date-to", type=_date_arg, help="End of date range filter (inclusive)")
    parser.add_argument("--top", type=_non_negative_int, default=0, help="Also print top N positive/negative employees")
    parser.add_argument("--timeline", action="store_true", help="Also print totals per date")
    parser.add_argument("--detail", metavar="ID", help="Print the per-record detail view for one employee id")
    parser.add_argument("--max-warnings", type=int, default=20, help="Warnings shown (all are collected)")
    return parser.parse_args(argv)


def _print_list(title: str, items: List[str], limit: Optional[int] = None) -> None:
    if not items:
        return
    print(f"\n{title} ({len(items)}):")
    shown = items if limit is None else items[:limit]
    for item in shown:
        print(f"  {item}")
    if len(shown) < len(items):
        print(f"  ... {len(items) - len(shown)} more")


def _print_detail(summary: EmployeeSummary, policy: AggregationPolicy) -> None:
    """Per-employee view: totals under the active and the detail-view policy, timeline, records."""
    print(f"\n=== Detail: {summary.id} {summary.colaborador} ===")
    if summary.alternative_names:
        print(f"Also recorded as: {', '.join(summary.alternative_names)}")
    print(
        f"Raw total: {format_minutes(summary.total_delta_minutes)} | "
        f"Bonus: {format_minutes(summary.total_extra_bonus_minutes)} | "
        f"Penalty: {format_minutes(-summary.total_atraso_penalty_minutes)} | "
        f"Adjusted total: {format_minutes(summary.adjusted_total_minutes)}"
    )
    detail_total = counted_total_minutes(summary.records, DETAIL_VIEW_POLICY)
    print(
        f"Detail-view total (no Ajuste, |delta| <= {DETAIL_VIEW_POLICY.ignore_deltas_up_to_minutes}min ignored): "
        f"{format_minutes(detail_total)}"
    )
    print(
        f"Policy: {policy.extra_bonus_hours:g}h per Hora Extra | {policy.atraso_penalty_hours:g}h per Atraso | "
        f"Ajuste counted: {'yes' if policy.include_adjustment_records else 'no'}"
    )

    print("\nPer date:")
    print(daily_timeline(summary.records).to_string(index=False))

    rows = [
        {
            "data": format_date(r.data),
            "classificacao": r.classificacao,
            "diferenca": r.diferenca_raw,
            "minutes": r.delta_minutes,
            "ajuste": "sim" if r.is_ajuste else "",
            "sheet": f"{r.source_sheet}:{r.row_index}",
        }
        for r in summary.records
    ]
    print("\nRecords:")
    with pd.option_context("display.max_rows", None, "display.width", 200):
        print(pd.DataFrame(rows).to_string(index=False))


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = parse_args(argv)

    try:
        workbook = read_workbook(args.input)
    except WorkbookReadError as e:
        logging.error(str(e))
        print(f"Error: {e}")
        return 1

    if args.list_sheets:
        infos = describe_sheets(workbook)
        print("\n=== Sheets ===")
        for info in infos:
            status = "ok" if info.has_required_columns else f"missing: {', '.join(info.missing_columns)}"
            print(f"{info.name}: {info.row_count} row(s) | {status}")
        return 0

    cfg = load_config(args.config)
    try:
        if args.sheets:
            sheet_names = [s.strip() for s in args.sheets.split(",") if s.strip()]
        else:
            sheet_names = sheets_from_config(cfg) or workbook.sheet_names
        policy = policy_from_config(
            cfg,
            {
                "extra_bonus_hours": args.extra_bonus_hours,
                "atraso_penalty_hours": args.atraso_penalty_hours,
                "include_adjustment_records": False if args.exclude_adjustments else None,
                "ignore_deltas_up_to_minutes": args.ignore_deltas_up_to,
            },
        )
    except (ConfigError, PolicyError) as e:
        logging.error(str(e))
        print(f"Error: {e}")
        return 1

    result = import_sheets(workbook, sheet_names)
    _print_list("Warnings", result.warnings, args.max_warnings)
    if not result.success:
        _print_list("Errors", result.errors)
        print("\nImport failed; no summary produced.")
        return 1

    summaries = aggregate(result.records, policy)
    detail = None
    if args.detail is not None:
        detail = next((s for s in summaries if s.id == args.detail.strip()), None)
        if detail is None:
            print(f"Error: no employee with id '{args.detail}'")
            return 1

    stats = calculate_global_stats(result.records, summaries)
    criteria = FilterCriteria(
        name=args.name,
        employee_id=args.employee_id,
        classification=args.classification,
        date_start=args.date_from,
        date_end=args.date_to,
    )
    filtered = apply_filters(summaries, criteria)

    first, last = first_and_last_date(result.records)
    print("\n=== Global Summary ===")
    print(f"Period: {format_date(first)} - {format_date(last)}")
    print(f"Collaborators: {stats.total_collaborators} | Records: {stats.total_records}")
    print(f"Raw total: {format_minutes(stats.total_bruto_minutes)} | Adjusted total: {format_minutes(stats.total_ajustado_minutes)}")
    print(
        f"Hora Extra: {stats.count_hora_extra} | Atraso: {stats.count_atraso} | "
        f"Normal: {stats.count_normal} | Outros: {stats.count_outros}"
    )
    print(f"Missing: {stats.total_sem_dados} | Parse errors: {stats.total_parse_errors} | Ajuste: {stats.total_ajuste}")

    print(f"\n=== Employees ({len(filtered)} of {len(summaries)}) ===")
    with pd.option_context("display.max_rows", None, "display.width", 200):
        print(summaries_to_frame(filtered).to_string(index=False))

    if args.top:
        _print_list(
            f"Top {args.top} positive",
            [f"{s.id} {s.colaborador}: {format_minutes(s.adjusted_total_minutes)}" for s in top_positive(filtered, args.top)],
        )
        _print_list(
            f"Top {args.top} negative",
            [f"{s.id} {s.colaborador}: {format_minutes(s.adjusted_total_minutes)}" for s in top_negative(filtered, args.top)],
        )

    if args.timeline:
        timeline = daily_timeline(r for s in filtered for r in s.records)
        print("\n=== Timeline ===")
        print(timeline.to_string(index=False))

    if detail is not None:
        _print_detail(detail, policy)

    return 0


if __name__ == "__main__":
    sys.exit(main())
