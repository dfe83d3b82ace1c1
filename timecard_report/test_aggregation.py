from datetime import date

import pytest

from timecard_report.aggregation import (
    DETAIL_VIEW_POLICY,
    NOT_INFORMED,
    SUMMARY_COLUMNS,
    AggregationPolicy,
    PolicyError,
    aggregate,
    calculate_global_stats,
    classify,
    counted_total_minutes,
    daily_timeline,
    summaries_to_frame,
    top_negative,
    top_positive,
)
from timecard_report.sheet_reader import NormalizedRecord


def _record(record_id, name, classificacao, delta, *, missing=False, error=False, ajuste=False, data=None, row=2):
    return NormalizedRecord(
        id=record_id,
        colaborador=name,
        classificacao=classificacao,
        diferenca_raw=str(delta),
        delta_minutes=delta,
        is_missing=missing,
        parse_error=error,
        is_ajuste=ajuste,
        source_sheet='Janeiro',
        row_index=row,
        data=data,
    )


def _sample_records():
    return [
        _record('10', 'Ana', 'Hora Extra', 60, data=date(2024, 1, 2)),
        _record('2', 'João', 'Atraso', -20, data=date(2024, 1, 2)),
        _record('2', 'Joao', 'atrasado', -5, data=date(2024, 1, 3)),
        _record('2', 'João', 'Normal', 0, missing=True),
        _record('2', 'J.', 'Folga', 0, error=True),
        _record('10', 'Ana', 'OVERTIME', 30, ajuste=True),
        _record('1', 'Bia', '', 5),
    ]


def test_classify_synonyms():
    assert classify('Hora Extra') == 'hora_extra'
    assert classify(' HORAEXTRA ') == 'hora_extra'
    assert classify('Atrasado') == 'atraso'
    assert classify('OK') == 'normal'
    assert classify('Férias') == 'outros'
    assert classify('') == 'outros'


def test_aggregate_groups_and_counters():
    summaries = aggregate(_sample_records())
    assert [s.id for s in summaries] == ['1', '2', '10']

    joao = summaries[1]
    assert joao.colaborador == 'João'
    assert joao.alternative_names == ['Joao', 'J.']
    assert joao.total_delta_minutes == -25
    assert joao.count_dias == 3
    assert joao.count_sem_dados == 1
    assert joao.count_parse_errors == 1
    assert joao.count_atraso == 2
    assert joao.count_normal == 1
    assert joao.count_outros == 1
    assert len(joao.records) == 4

    ana = summaries[2]
    assert ana.count_hora_extra == 2
    assert ana.count_ajuste == 1
    assert ana.count_dias == 1
    assert ana.total_delta_minutes == 90


def test_default_policy_has_no_adjustment():
    for summary in aggregate(_sample_records()):
        assert summary.adjusted_total_minutes == summary.total_delta_minutes


def test_policy_bonus_and_penalty():
    policy = AggregationPolicy(extra_bonus_hours=1, atraso_penalty_hours=0.5)
    summaries = {s.id: s for s in aggregate(_sample_records(), policy)}
    assert summaries['10'].total_extra_bonus_minutes == 120
    assert summaries['10'].adjusted_total_minutes == 210
    assert summaries['2'].total_atraso_penalty_minutes == 60
    assert summaries['2'].adjusted_total_minutes == -85
    assert summaries['1'].adjusted_total_minutes == 5


def test_policy_sensitivity():
    records = _sample_records()
    low = {s.id: s for s in aggregate(records, AggregationPolicy(extra_bonus_hours=1))}
    high = {s.id: s for s in aggregate(records, AggregationPolicy(extra_bonus_hours=1.25))}
    assert high['10'].adjusted_total_minutes > low['10'].adjusted_total_minutes
    assert high['2'].adjusted_total_minutes == low['2'].adjusted_total_minutes
    assert high['1'].adjusted_total_minutes == low['1'].adjusted_total_minutes


def test_negative_policy_rejected():
    with pytest.raises(PolicyError):
        AggregationPolicy(extra_bonus_hours=-1)
    with pytest.raises(PolicyError):
        AggregationPolicy(atraso_penalty_hours=-0.5)
    with pytest.raises(PolicyError):
        AggregationPolicy(ignore_deltas_up_to_minutes=-1)


def test_policy_value_types():
    policy = AggregationPolicy(extra_bonus_hours='1', atraso_penalty_hours=' 0.5 ')
    assert policy.extra_bonus_hours == 1.0
    assert policy.atraso_penalty_hours == 0.5
    assert aggregate(_sample_records(), policy)[2].total_extra_bonus_minutes == 120

    for bad in ({'extra_bonus_hours': 'abc'}, {'atraso_penalty_hours': True}, {'extra_bonus_hours': [1]}):
        with pytest.raises(PolicyError):
            AggregationPolicy(**bad)
    with pytest.raises(PolicyError):
        AggregationPolicy(include_adjustment_records='false')
    with pytest.raises(PolicyError):
        AggregationPolicy(include_adjustment_records=0)
    for bad in ('10', 1.5, True):
        with pytest.raises(PolicyError):
            AggregationPolicy(ignore_deltas_up_to_minutes=bad)


def test_totals_match_records_and_idempotent():
    records = _sample_records()
    snapshot = list(records)
    first = aggregate(records)
    second = aggregate(records)
    assert first == second
    assert records == snapshot
    assert sum(s.total_delta_minutes for s in first) == sum(r.delta_minutes for r in records)


def test_exclusion_policies():
    records = _sample_records()
    no_ajuste = {s.id: s for s in aggregate(records, AggregationPolicy(include_adjustment_records=False))}
    assert no_ajuste['10'].total_delta_minutes == 60
    assert no_ajuste['10'].count_ajuste == 1

    detail = {s.id: s for s in aggregate(records, DETAIL_VIEW_POLICY)}
    assert detail['2'].total_delta_minutes == -20
    assert detail['1'].total_delta_minutes == 0
    assert counted_total_minutes(records, DETAIL_VIEW_POLICY) == 40
    assert counted_total_minutes(records) == 70


def test_mixed_ids_sort_lexicographically():
    records = [_record('10', 'A', 'Normal', 1), _record('B7', 'B', 'Normal', 1), _record('2', 'C', 'Normal', 1)]
    assert [s.id for s in aggregate(records)] == ['10', '2', 'B7']


def test_name_ties_keep_first_seen():
    records = [_record('1', 'Bia', 'Normal', 0), _record('1', 'Beatriz', 'Normal', 0), _record('1', '', 'Normal', 0)]
    summary = aggregate(records)[0]
    assert summary.colaborador == 'Bia'
    assert summary.alternative_names == ['Beatriz']


def test_global_stats():
    records = _sample_records()
    policy = AggregationPolicy(extra_bonus_hours=1)
    summaries = aggregate(records, policy)
    stats = calculate_global_stats(records, summaries)
    assert stats.total_collaborators == 3
    assert stats.total_records == 7
    assert stats.total_bruto_minutes == 70
    assert stats.total_counted_minutes == 70
    assert stats.total_ajustado_minutes == 190
    assert stats.total_sem_dados == 1
    assert stats.total_parse_errors == 1
    assert stats.total_ajuste == 1
    assert stats.count_hora_extra == 2
    assert stats.count_atraso == 2
    assert stats.count_normal == 1
    assert stats.count_outros == 2
    assert stats.by_classificacao[NOT_INFORMED] == 1
    assert stats.by_classificacao['Hora Extra'] == 1
    assert stats.by_classificacao['OVERTIME'] == 1


def test_top_lists():
    summaries = aggregate(_sample_records())
    assert [s.id for s in top_positive(summaries)] == ['10', '1']
    assert [s.id for s in top_negative(summaries)] == ['2']
    assert [s.id for s in top_positive(summaries, 1)] == ['10']


def test_daily_timeline():
    timeline = daily_timeline(_sample_records())
    assert list(timeline.columns) == ['data', 'total_minutes', 'records']
    assert timeline['data'].tolist() == [date(2024, 1, 2), date(2024, 1, 3)]
    assert timeline['total_minutes'].tolist() == [40, -5]
    assert timeline['records'].tolist() == [2, 1]
    assert daily_timeline([]).empty


def test_summaries_to_frame():
    frame = summaries_to_frame(aggregate(_sample_records()))
    assert list(frame.columns) == SUMMARY_COLUMNS
    assert frame['id'].tolist() == ['1', '2', '10']
    assert frame['alternative_names'].tolist() == ['', 'Joao, J.', '']


if __name__ == '__main__':
    raise SystemExit(pytest.main([__file__, '-q']))
