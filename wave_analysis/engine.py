"""
Wave Analyzer
Runs the full pipeline for one price history:
indicators -> pivots -> labels -> rules + divergence -> multi-view
synthesis -> targets -> confidence and advice.

The analyzer holds configuration only; every call builds a fresh result,
so one instance can serve many symbols concurrently.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .advisor import WaveAdvisor
from .config import resolve_config
from .confidence import ConfidenceScorer
from .divergence import DivergenceDetector
from .indicators import TechnicalIndicators
from .models import (
    AnalysisResult, DivergenceResult, DivergenceType, InsufficientDataResult,
    PriceBar, TechnicalSnapshot,
)
from .multi_view import MultiViewSynthesizer
from .pivot_detector import PivotDetector, price_arrays
from .rule_engine import ElliottRuleEngine
from .targets import TargetProjector
from .wave_labeler import WaveLabeler

logger = logging.getLogger(__name__)

BarLike = Union[PriceBar, Mapping[str, Any]]


def to_price_bars(history: Iterable[BarLike]) -> List[PriceBar]:
    """
    Accept PriceBars or plain mappings. Mappings without open/high/low use
    the close for the missing fields. Invalid rows raise pydantic's
    ValidationError.
    """
    bars = []
    for row in history:
        if isinstance(row, PriceBar):
            bars.append(row)
            continue
        data = dict(row)
        close = data.get('close')
        for key in ('open', 'high', 'low'):
            if data.get(key) is None:
                data[key] = close
        bars.append(PriceBar.model_validate(data))
    return bars


class WaveAnalyzer:
    def __init__(self, config: Optional[Dict] = None):
        self.config = resolve_config(config)
        self.min_history_bars = self.config.get('min_history_bars', 30)
        self.detector = PivotDetector(self.config)
        self.labeler = WaveLabeler(self.config)
        self.rule_engine = ElliottRuleEngine(self.config)
        self.divergence_detector = DivergenceDetector(self.config)
        self.synthesizer = MultiViewSynthesizer(self.config, self.detector, self.labeler, self.divergence_detector)
        self.projector = TargetProjector(self.config)
        self.scorer = ConfidenceScorer(self.config)
        self.advisor = WaveAdvisor()
        logger.info(f"Initialized WaveAnalyzer (min history {self.min_history_bars} bars)")

    def analyze(self, history: Iterable[BarLike], current_price: Optional[float] = None,
                symbol: Optional[str] = None) -> Union[AnalysisResult, InsufficientDataResult]:
        """
        Analyze a daily price history.

        Args:
            history: Daily bars, oldest first (PriceBars or mappings)
            current_price: Latest price; the last close when omitted
            symbol: Optional symbol echoed in the result

        Returns:
            AnalysisResult, or InsufficientDataResult for short histories
        """
        bars = to_price_bars(history)
        if len(bars) < self.min_history_bars:
            logger.warning(f"Insufficient history for {symbol or 'series'}: {len(bars)} bars (need {self.min_history_bars})")
            return InsufficientDataResult(
                symbol=symbol,
                message=f"at least {self.min_history_bars} bars of history are required",
                bars_required=self.min_history_bars,
                bars_received=len(bars),
            )
        if current_price is None:
            current_price = bars[-1].close

        pivots = self.detector.find_pivots(bars)
        if len(pivots) >= 2:
            is_uptrend = pivots[-1].price > pivots[0].price
        else:
            is_uptrend = bars[-1].close >= bars[0].close
        cycle = self.labeler.label_waves(pivots, is_uptrend, bars=bars)

        rule_report = self.rule_engine.check_rules(cycle)
        divergence = self.divergence_detector.detect_divergence(bars)
        multi_view = self.synthesizer.synthesize(bars, current_price, divergence=divergence)
        current_wave = multi_view.wave

        technicals = self.compute_technicals(bars, is_uptrend, divergence)
        targets = self.projector.project_targets(cycle, current_wave, current_price)
        report = self.scorer.score(cycle, rule_report, technicals, targets, current_wave)
        advice = self.advisor.advise(current_wave, targets, technicals)

        details = [f"Outlook: {multi_view.suggestion}"] if multi_view.suggestion else []
        details += advice['details'] + report.details

        logger.info(f"{symbol or 'series'}: wave {current_wave}, confidence {report.score} ({report.level}), action '{advice['action']}'")
        return AnalysisResult(
            symbol=symbol,
            current_wave=current_wave,
            confidence=report.score,
            confidence_level=report.level,
            action=advice['action'],
            suggestion_text=advice['summary'],
            reason=multi_view.reason,
            waves=cycle.waves,
            discarded_waves=cycle.history,
            pivots=pivots,
            is_uptrend=is_uptrend,
            trend='uptrend' if is_uptrend else 'downtrend',
            rules=rule_report.rules,
            guidelines=rule_report.guidelines,
            divergence=divergence,
            targets=targets,
            technicals=technicals,
            statistics=self.labeler.wave_statistics(cycle),
            subwaves=self.labeler.estimate_subwaves(cycle),
            multi_view=multi_view,
            details=details,
            knowledge=advice['knowledge'],
        )

    def compute_technicals(self, bars: List[PriceBar], is_uptrend: bool,
                           divergence: DivergenceResult) -> TechnicalSnapshot:
        """Indicator snapshot plus trend confirmation and divergence flags."""
        cfg = self.config
        closes, highs, lows = price_arrays(bars)

        rsi = TechnicalIndicators.rsi(closes, cfg.get('rsi_period', 14))
        macd = TechnicalIndicators.macd(closes, cfg.get('macd_fast', 12), cfg.get('macd_slow', 26), cfg.get('macd_signal', 9))
        histogram = macd.histogram

        if is_uptrend:
            rsi_confirm, macd_confirm = rsi > 50, histogram > 0
            rsi_divergence = divergence.type is DivergenceType.BEARISH
        else:
            rsi_confirm, macd_confirm = rsi < 50, histogram < 0
            rsi_divergence = divergence.type is DivergenceType.BULLISH

        # MACD histogram pointing against the recent price trend
        lookback = cfg.get('macd_divergence_lookback', 20)
        macd_divergence = False
        if len(closes) >= lookback:
            price_rising = closes[-1] > closes[-lookback]
            macd_divergence = bool((price_rising and histogram < 0) or (not price_rising and histogram > 0))

        return TechnicalSnapshot(
            rsi=round(rsi, 1),
            macd_histogram=round(histogram, 4),
            short_ma=round(TechnicalIndicators.sma(closes, cfg.get('short_ma_period', 5)), 2),
            long_ma=round(TechnicalIndicators.sma(closes, cfg.get('long_ma_period', 20)), 2),
            macd_line=round(macd.macd_line, 4),
            signal_line=round(macd.signal_line, 4),
            kd=TechnicalIndicators.stochastic_kd(highs, lows, closes, cfg.get('kd_period', 9)),
            bollinger=TechnicalIndicators.bollinger(closes, cfg.get('bollinger_period', 20), cfg.get('bollinger_std_dev', 2.0)),
            atr=round(TechnicalIndicators.atr(highs, lows, closes, cfg.get('atr_period', 14)), 4),
            rsi_confirm=bool(rsi_confirm),
            macd_confirm=bool(macd_confirm),
            rsi_divergence=rsi_divergence,
            macd_divergence=macd_divergence,
        )


def analyze(history: Iterable[BarLike], current_price: Optional[float] = None,
            config: Optional[Dict] = None) -> Union[AnalysisResult, InsufficientDataResult]:
    """Convenience wrapper: analyze one history with a throwaway analyzer."""
    return WaveAnalyzer(config).analyze(history, current_price)
