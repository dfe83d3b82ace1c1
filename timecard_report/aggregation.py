"""
Per-employee and global aggregation of normalized attendance records.

All functions are pure: they read NormalizedRecord sequences and return new
summary objects; re-running with the same records and policy gives equal
results.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from timecard_report.sheet_reader import NormalizedRecord, normalize_text


class PolicyError(ValueError):
    """Raised for invalid aggregation policy values."""


Minutes = Union[int, float]

NOT_INFORMED = "Não informado"

_INTEGER_ID = re.compile(r"^[+-]?\d+$")

HORA_EXTRA = "hora_extra"
ATRASO = "atraso"
NORMAL = "normal"
OUTROS = "outros"

CLASSIFICATION_SYNONYMS: Dict[str, set] = {
    HORA_EXTRA: {"hora extra", "horaextra", "extra", "overtime"},
    ATRASO: {"atraso", "late", "atrasado"},
    NORMAL: {"normal", "regular", "ok"},
}


@dataclass(frozen=True)
class AggregationPolicy:
    """Bonus/penalty rules and which records count toward raw totals.

    extra_bonus_hours / atraso_penalty_hours are applied once per matching
    record. include_adjustment_records decides whether Ajuste rows enter
    total_delta_minutes; ignore_deltas_up_to_minutes, when set, leaves out
    records whose |delta| is at or below the value.
    """
    extra_bonus_hours: float = 0
    atraso_penalty_hours: float = 0
    include_adjustment_records: bool = True
    ignore_deltas_up_to_minutes: Optional[int] = None

    def __post_init__(self):
        # frozen: normalized values are written back through object.__setattr__
        for name in ("extra_bonus_hours", "atraso_penalty_hours"):
            object.__setattr__(self, name, _hours_value(name, getattr(self, name)))

        if not isinstance(self.include_adjustment_records, bool):
            raise PolicyError(
                f"include_adjustment_records must be true or false, got {self.include_adjustment_records!r}"
            )

        threshold = self.ignore_deltas_up_to_minutes
        if threshold is not None:
            if isinstance(threshold, bool) or not isinstance(threshold, int):
                raise PolicyError(f"ignore_deltas_up_to_minutes must be an integer, got {threshold!r}")
            if threshold < 0:
                raise PolicyError(f"ignore_deltas_up_to_minutes must be >= 0, got {threshold}")


def _hours_value(name: str, value) -> float:
    if isinstance(value, bool):
        raise PolicyError(f"{name} must be a number, got {value!r}")
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise PolicyError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(hours) or hours < 0:
        raise PolicyError(f"{name} must be a finite number >= 0, got {value!r}")
    return hours


DEFAULT_POLICY = AggregationPolicy()

# Totals as shown on the per-employee detail view.
DETAIL_VIEW_POLICY = AggregationPolicy(include_adjustment_records=False, ignore_deltas_up_to_minutes=10)


@dataclass
class EmployeeSummary:
    id: str
    colaborador: str
    alternative_names: List[str]
    total_delta_minutes: int
    count_dias: int
    count_sem_dados: int
    count_parse_errors: int
    count_ajuste: int
    count_hora_extra: int
    count_atraso: int
    count_normal: int
    count_outros: int
    total_extra_bonus_minutes: Minutes
    total_atraso_penalty_minutes: Minutes
    adjusted_total_minutes: Minutes
    records: List[NormalizedRecord] = field(default_factory=list)


@dataclass
class GlobalStats:
    total_collaborators: int
    total_records: int
    total_bruto_minutes: int
    total_counted_minutes: int
    total_ajustado_minutes: Minutes
    total_sem_dados: int
    total_parse_errors: int
    total_ajuste: int
    count_hora_extra: int
    count_atraso: int
    count_normal: int
    count_outros: int
    by_classificacao: Dict[str, int]


def classify(label: str) -> str:
    """Bucket a free-form classification label (accent, case and space insensitive)."""
    normalized = normalize_text(label or "")
    for bucket, synonyms in CLASSIFICATION_SYNONYMS.items():
        if normalized in synonyms:
            return bucket
    return OUTROS


def _as_minutes(value: float) -> Minutes:
    return int(value) if float(value).is_integer() else value


def counts_toward_total(record: NormalizedRecord, policy: AggregationPolicy) -> bool:
    if record.is_ajuste and not policy.include_adjustment_records:
        return False
    threshold = policy.ignore_deltas_up_to_minutes
    if threshold is not None and abs(record.delta_minutes) <= threshold:
        return False
    return True


def counted_total_minutes(records: Iterable[NormalizedRecord], policy: AggregationPolicy = DEFAULT_POLICY) -> int:
    """Sum of delta_minutes over the records the policy lets into totals."""
    return sum(r.delta_minutes for r in records if counts_toward_total(r, policy))


def most_frequent_name(records: Iterable[NormalizedRecord]):
    """Return (main name, alternative names by descending frequency).

    Empty names are ignored; ties go to the name seen first.
    """
    counts = Counter(r.colaborador.strip() for r in records if r.colaborador.strip())
    ranked = [name for name, _ in counts.most_common()]
    if not ranked:
        return "", []
    return ranked[0], ranked[1:]


def _summarize(record_id: str, records: List[NormalizedRecord], policy: AggregationPolicy) -> EmployeeSummary:
    main_name, alternative_names = most_frequent_name(records)

    buckets = Counter(classify(r.classificacao) for r in records)
    count_hora_extra = buckets[HORA_EXTRA]
    count_atraso = buckets[ATRASO]

    total_delta = counted_total_minutes(records, policy)
    bonus = _as_minutes(count_hora_extra * policy.extra_bonus_hours * 60)
    penalty = _as_minutes(count_atraso * policy.atraso_penalty_hours * 60)

    return EmployeeSummary(
        id=record_id,
        colaborador=main_name,
        alternative_names=alternative_names,
        total_delta_minutes=total_delta,
        count_dias=sum(1 for r in records if not r.is_missing and not r.is_ajuste),
        count_sem_dados=sum(1 for r in records if r.is_missing),
        count_parse_errors=sum(1 for r in records if r.parse_error),
        count_ajuste=sum(1 for r in records if r.is_ajuste),
        count_hora_extra=count_hora_extra,
        count_atraso=count_atraso,
        count_normal=buckets[NORMAL],
        count_outros=buckets[OUTROS],
        total_extra_bonus_minutes=bonus,
        total_atraso_penalty_minutes=penalty,
        adjusted_total_minutes=_as_minutes(total_delta + bonus - penalty),
        records=list(records),
    )


def sort_by_id(summaries: List[EmployeeSummary]) -> List[EmployeeSummary]:
    """Numeric order when every id is an integer, lexicographic otherwise."""
    if all(_INTEGER_ID.match(s.id) for s in summaries):
        return sorted(summaries, key=lambda s: int(s.id))
    return sorted(summaries, key=lambda s: s.id)


def aggregate(records: Iterable[NormalizedRecord], policy: AggregationPolicy = DEFAULT_POLICY) -> List[EmployeeSummary]:
    """Group records by employee id and build one summary per id."""
    groups: Dict[str, List[NormalizedRecord]] = {}
    for record in records:
        groups.setdefault(record.id, []).append(record)

    summaries = [_summarize(record_id, group, policy) for record_id, group in groups.items()]
    return sort_by_id(summaries)


def calculate_global_stats(records: List[NormalizedRecord], summaries: List[EmployeeSummary]) -> GlobalStats:
    by_classificacao: Dict[str, int] = {}
    buckets: Counter = Counter()
    total_bruto = 0
    total_sem_dados = 0
    total_parse_errors = 0
    total_ajuste = 0

    for record in records:
        total_bruto += record.delta_minutes
        if record.is_missing:
            total_sem_dados += 1
        if record.parse_error:
            total_parse_errors += 1
        if record.is_ajuste:
            total_ajuste += 1
        label = record.classificacao.strip() or NOT_INFORMED
        by_classificacao[label] = by_classificacao.get(label, 0) + 1
        buckets[classify(record.classificacao)] += 1

    return GlobalStats(
        total_collaborators=len(summaries),
        total_records=len(records),
        total_bruto_minutes=total_bruto,
        total_counted_minutes=sum(s.total_delta_minutes for s in summaries),
        total_ajustado_minutes=_as_minutes(sum(s.adjusted_total_minutes for s in summaries)),
        total_sem_dados=total_sem_dados,
        total_parse_errors=total_parse_errors,
        total_ajuste=total_ajuste,
        count_hora_extra=buckets[HORA_EXTRA],
        count_atraso=buckets[ATRASO],
        count_normal=buckets[NORMAL],
        count_outros=buckets[OUTROS],
        by_classificacao=by_classificacao,
    )


# -------------------------------
# Dashboard views
# -------------------------------
def top_positive(summaries: List[EmployeeSummary], n: int = 10) -> List[EmployeeSummary]:
    positive = [s for s in summaries if s.adjusted_total_minutes > 0]
    return sorted(positive, key=lambda s: s.adjusted_total_minutes, reverse=True)[:n]


def top_negative(summaries: List[EmployeeSummary], n: int = 10) -> List[EmployeeSummary]:
    negative = [s for s in summaries if s.adjusted_total_minutes < 0]
    return sorted(negative, key=lambda s: s.adjusted_total_minutes)[:n]


def daily_timeline(records: Iterable[NormalizedRecord]) -> pd.DataFrame:
    """Total minutes and record count per calendar date (date-less records left out)."""
    rows = [(r.data, r.delta_minutes) for r in records if r.data is not None]
    if not rows:
        return pd.DataFrame(columns=["data", "total_minutes", "records"])
    df = pd.DataFrame(rows, columns=["data", "delta_minutes"])
    timeline = (
        df.groupby("data", sort=True)["delta_minutes"]
        .agg(total_minutes="sum", records="count")
        .reset_index()
    )
    return timeline


SUMMARY_COLUMNS = [
    "id",
    "colaborador",
    "alternative_names",
    "count_dias",
    "count_sem_dados",
    "count_parse_errors",
    "count_ajuste",
    "count_hora_extra",
    "count_atraso",
    "count_normal",
    "count_outros",
    "total_delta_minutes",
    "total_extra_bonus_minutes",
    "total_atraso_penalty_minutes",
    "adjusted_total_minutes",
]


def summaries_to_frame(summaries: List[EmployeeSummary]) -> pd.DataFrame:
    """Tabular view of summaries, one row per employee in the given order."""
    data = []
    for s in summaries:
        row = {col: getattr(s, col) for col in SUMMARY_COLUMNS}
        row["alternative_names"] = ", ".join(s.alternative_names)
        data.append(row)
    return pd.DataFrame(data, columns=SUMMARY_COLUMNS)


def first_and_last_date(records: Iterable[NormalizedRecord]):
    dates: List[date] = [r.data for r in records if r.data is not None]
    if not dates:
        return None, None
    return min(dates), max(dates)
