"""
End-to-end tests for the wave analyzer.
"""

import datetime
import json

import pytest
from pydantic import ValidationError

from wave_analysis.advisor import ACTIONS, WAVE_KNOWLEDGE, WaveAdvisor
from wave_analysis.engine import WaveAnalyzer, analyze, to_price_bars
from wave_analysis.models import AnalysisResult, InsufficientDataResult, TargetSet, TechnicalSnapshot, WaveLabel


@pytest.fixture
def analyzer(config):
    return WaveAnalyzer(config)


def test_insufficient_history(analyzer, make_bars):
    result = analyzer.analyze(make_bars(range(100, 110)), symbol='TEST')

    assert isinstance(result, InsufficientDataResult)
    assert result.status == 'insufficient_data'
    assert result.bars_required == 30
    assert result.bars_received == 10
    assert result.symbol == 'TEST'


def test_rally_then_pullback_is_wave_2(analyzer, rally_then_pullback):
    """A single rally followed by a pullback reads as wave 2."""
    result = analyzer.analyze(rally_then_pullback, symbol='WAVE')

    assert isinstance(result, AnalysisResult)
    assert result.current_wave is WaveLabel.TWO
    assert result.action == ACTIONS[WaveLabel.TWO]
    assert result.is_uptrend and result.trend == 'uptrend'
    assert [w.label for w in result.waves] == [WaveLabel.ONE, WaveLabel.TWO]
    assert len(result.rules) == 3
    assert all(r.passed for r in result.rules)
    assert result.multi_view.consensus == 'high'
    assert 0 <= result.confidence <= 100
    assert result.targets.stop_loss == 100.0, "Wave 2 stop sits at the wave 1 origin"
    assert result.details[0].startswith("Outlook:")
    assert result.knowledge['name'] == WAVE_KNOWLEDGE[WaveLabel.TWO]['name']


def test_result_serializes_to_json(analyzer, rally_then_pullback):
    payload = analyzer.analyze(rally_then_pullback).model_dump(mode='json')

    assert payload['status'] == 'ok'
    assert payload['current_wave'] == '2'
    assert payload['waves'][0]['start_date'] == '2024-01-01'
    assert payload['multi_view']['short_term']['wave'] == '2'
    json.dumps(payload)


def test_default_price_is_last_close(analyzer, rally_then_pullback):
    implicit = analyzer.analyze(rally_then_pullback)
    explicit = analyzer.analyze(rally_then_pullback, current_price=140.0)
    assert implicit.model_dump() == explicit.model_dump()


def test_monotonic_rise_is_wave_1(analyzer, make_bars):
    """A clean one-way advance has a single leg."""
    result = analyzer.analyze(make_bars([100 + i for i in range(40)]))

    assert [w.label for w in result.waves] == [WaveLabel.ONE]
    assert result.current_wave is WaveLabel.ONE


def test_flat_history_uses_default_structure(analyzer, make_bars):
    result = analyzer.analyze(make_bars([100] * 40))

    assert isinstance(result, AnalysisResult)
    assert [w.label for w in result.waves] == [WaveLabel.ONE]
    assert result.pivots == []


def test_mappings_are_accepted(analyzer):
    """Rows with only date and close are filled in from the close."""
    start = datetime.date(2024, 1, 1)
    rows = [{'date': start + datetime.timedelta(days=i), 'close': 100 + i} for i in range(40)]
    bars = to_price_bars(rows)

    assert bars[0].open == bars[0].high == bars[0].low == 100
    assert isinstance(analyzer.analyze(rows), AnalysisResult)


def test_invalid_price_raises(analyzer):
    rows = [{'date': datetime.date(2024, 1, 1), 'close': 0}]
    with pytest.raises(ValidationError):
        analyzer.analyze(rows)


def test_module_level_analyze(rally_then_pullback):
    assert analyze(rally_then_pullback).current_wave is WaveLabel.TWO


def test_advisor_warnings():
    """Wave 5 advice flags divergence; wave B warns of a bull trap."""
    targets = TargetSet(target_up=120.0, target_down=90.0, stop_loss=95.0)
    technicals = TechnicalSnapshot(rsi=72.0, macd_histogram=-0.2, short_ma=110.0, long_ma=105.0,
                                   rsi_divergence=True, macd_divergence=True)
    advisor = WaveAdvisor()

    five = advisor.advise(WaveLabel.FIVE, targets, technicals)
    assert five['action'] == 'scale out'
    assert "Warning: RSI divergence present" in five['details']
    assert "Warning: MACD divergence present" in five['details']

    b = advisor.advise(WaveLabel.B, targets, technicals)
    assert any(d.startswith("Bull trap warning") for d in b['details'])

    for label in WaveLabel.ring():
        assert advisor.advise(label, targets, technicals)['details'], f"No advice for wave {label}"


@pytest.mark.parametrize("steps", [3, 7, 8])
def test_uptrend_closing_at_its_high_is_an_advance(analyzer, make_bars, staircase, steps):
    """Rises of 12% with 6% dips, closing on the all-time high, never read as a correction."""
    closes = staircase(steps)
    result = analyzer.analyze(make_bars(closes))
    advances = (WaveLabel.ONE, WaveLabel.THREE, WaveLabel.FIVE)

    assert result.current_wave in advances, result.reason
    assert result.action == ACTIONS[result.current_wave]
    for view in (result.multi_view.short_term, result.multi_view.mid_term, result.multi_view.long_term):
        assert view.wave in advances, view.reason
        assert view.price_position == 100.0
