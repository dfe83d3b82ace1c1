from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from timecard_report.aggregation import EmployeeSummary
from timecard_report.sheet_reader import normalize_text


ALL_CLASSIFICATIONS = {"todas", "all"}


@dataclass(frozen=True)
class FilterCriteria:
    name: str = ""
    employee_id: str = ""
    classification: str = "todas"
    date_start: Optional[date] = None
    date_end: Optional[date] = None


def filter_by_name(summaries: List[EmployeeSummary], term: str) -> List[EmployeeSummary]:
    """Case-insensitive substring match on the main or any alternative name."""
    needle = term.strip().casefold()
    if not needle:
        return list(summaries)
    return [
        s for s in summaries
        if needle in s.colaborador.casefold()
        or any(needle in alt.casefold() for alt in s.alternative_names)
    ]


def filter_by_id(summaries: List[EmployeeSummary], term: str) -> List[EmployeeSummary]:
    needle = term.strip()
    if not needle:
        return list(summaries)
    return [s for s in summaries if needle in s.id]


def filter_by_classification(summaries: List[EmployeeSummary], label: str) -> List[EmployeeSummary]:
    """Keep summaries with at least one record whose label equals `label` after normalization."""
    wanted = normalize_text(label or "")
    if not wanted or wanted in ALL_CLASSIFICATIONS:
        return list(summaries)
    return [
        s for s in summaries
        if any(normalize_text(r.classificacao) == wanted for r in s.records)
    ]


def _in_range(value: date, start: Optional[date], end: Optional[date]) -> bool:
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def filter_by_date_range(
    summaries: List[EmployeeSummary], start: Optional[date], end: Optional[date]
) -> List[EmployeeSummary]:
    """Keep summaries with a record dated inside [start, end].

    Records without a date are never hidden by this filter: a summary holding
    any date-less record is always kept.
    """
    if start is None and end is None:
        return list(summaries)
    return [
        s for s in summaries
        if any(r.data is None or _in_range(r.data, start, end) for r in s.records)
    ]


def apply_filters(summaries: List[EmployeeSummary], criteria: FilterCriteria) -> List[EmployeeSummary]:
    result = list(summaries)
    if criteria.name:
        result = filter_by_name(result, criteria.name)
    if criteria.employee_id:
        result = filter_by_id(result, criteria.employee_id)
    if criteria.classification:
        result = filter_by_classification(result, criteria.classification)
    if criteria.date_start is not None or criteria.date_end is not None:
        result = filter_by_date_range(result, criteria.date_start, criteria.date_end)
    return result
