"""
Data model for the Elliott Wave engine.

All records are pydantic models so the HTTP layer can return an
AnalysisResult verbatim. Wave labels form a ring (1-2-3-4-5-A-B-C-1...).
"""

import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    UP = 'up'
    DOWN = 'down'

    def opposite(self) -> 'Direction':
        return Direction.DOWN if self is Direction.UP else Direction.UP


class PivotType(str, Enum):
    HIGH = 'high'
    LOW = 'low'


class WaveKind(str, Enum):
    IMPULSIVE = 'impulsive'
    CORRECTIVE = 'corrective'
    COUNTER_TREND = 'counter-trend'


class DivergenceType(str, Enum):
    BULLISH = 'bullish'
    BEARISH = 'bearish'
    NONE = 'none'


class WaveLabel(str, Enum):
    """
    Canonical Elliott labels. Each member knows its position on the
    8-phase ring, its kind and its canonical direction.
    """
    ONE = '1'
    TWO = '2'
    THREE = '3'
    FOUR = '4'
    FIVE = '5'
    A = 'A'
    B = 'B'
    C = 'C'

    @classmethod
    def ring(cls) -> List['WaveLabel']:
        return list(cls)

    @classmethod
    def at(cls, position: int) -> 'WaveLabel':
        ring = cls.ring()
        return ring[position % len(ring)]

    @property
    def position(self) -> int:
        return WaveLabel.ring().index(self)

    @property
    def kind(self) -> WaveKind:
        if self in (WaveLabel.ONE, WaveLabel.THREE, WaveLabel.FIVE):
            return WaveKind.IMPULSIVE
        if self is WaveLabel.B:
            return WaveKind.COUNTER_TREND
        return WaveKind.CORRECTIVE

    @property
    def direction(self) -> Direction:
        if self in (WaveLabel.ONE, WaveLabel.THREE, WaveLabel.FIVE, WaveLabel.B):
            return Direction.UP
        return Direction.DOWN

    @property
    def is_advanced(self) -> bool:
        """Waves 3, 4 and 5: the later part of an impulse."""
        return self in (WaveLabel.THREE, WaveLabel.FOUR, WaveLabel.FIVE)

    def next(self) -> 'WaveLabel':
        return WaveLabel.at(self.position + 1)

    def __str__(self) -> str:
        return self.value


class PriceBar(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    open: float = Field(..., gt=0)
    high: float = Field(..., gt=0)
    low: float = Field(..., gt=0)
    close: float = Field(..., gt=0)
    volume: float = Field(0.0, ge=0)


class Pivot(BaseModel):
    type: PivotType
    price: float
    index: int
    date: Optional[datetime.date] = None
    provisional: bool = False


class FibRatio(BaseModel):
    ratio: float
    closest_fib: float
    accuracy: int


class Wave(BaseModel):
    label: WaveLabel
    kind: WaveKind
    direction: Direction
    start_price: float
    end_price: float
    start_index: int
    end_index: int
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    change_percent: float
    duration: int
    fib_ratio_to_prior_wave: Optional[FibRatio] = None

    @property
    def magnitude(self) -> float:
        return abs(self.end_price - self.start_price)

    @property
    def abs_change(self) -> float:
        return abs(self.change_percent)


class RuleCheck(BaseModel):
    rule: str
    passed: bool = True
    importance: str = 'cardinal'
    detail: str = ''


class GuidelineCheck(BaseModel):
    guideline: str
    follows: bool
    detail: str = ''


class RuleReport(BaseModel):
    rules: List[RuleCheck]
    guidelines: List[GuidelineCheck] = []

    @property
    def passed_rules(self) -> int:
        return sum(1 for r in self.rules if r.passed)

    @property
    def followed_guidelines(self) -> int:
        return sum(1 for g in self.guidelines if g.follows)


class DivergenceResult(BaseModel):
    has_divergence: bool = False
    type: DivergenceType = DivergenceType.NONE
    confidence: float = 0.0
    detail: str = ''


class MACDResult(BaseModel):
    macd_line: float = 0.0
    signal_line: float = 0.0
    histogram: float = 0.0


class BollingerBands(BaseModel):
    upper: float
    middle: float
    lower: float
    bandwidth_pct: float


class StochasticKD(BaseModel):
    k: float = 50.0
    d: float = 50.0
    rsv: float = 50.0


class TechnicalSnapshot(BaseModel):
    rsi: float
    macd_histogram: float
    short_ma: float
    long_ma: float
    macd_line: float = 0.0
    signal_line: float = 0.0
    kd: Optional[StochasticKD] = None
    bollinger: Optional[BollingerBands] = None
    atr: float = 0.0
    rsi_confirm: bool = False
    macd_confirm: bool = False
    rsi_divergence: bool = False
    macd_divergence: bool = False


class FibLevel(BaseModel):
    ratio: float
    price: float
    label: str


class TargetSet(BaseModel):
    target_up: float
    target_down: float
    stop_loss: float
    fib_levels: List[FibLevel] = []
    # None when the stop equals the current price (risk is undefined)
    risk_reward: Optional[float] = None


class TimeframeView(BaseModel):
    label: str
    bars: int
    threshold: float
    wave: WaveLabel
    reason: str
    pivot_count: int = 0
    price_position: float = 0.0
    gain_from_low: float = 0.0
    pullback_from_high: float = 0.0


class MultiViewBreakdown(BaseModel):
    short_term: TimeframeView
    mid_term: TimeframeView
    long_term: TimeframeView
    consensus: Literal['high', 'medium', 'low']
    spread: int
    wave: WaveLabel
    confidence: int
    reason: str
    suggestion: str = ''
    weekly_wave_count: int = 0
    major_wave_count: int = 0
    dynamic_threshold: float = 0.0


class ConfidenceReport(BaseModel):
    score: int
    level: str
    action: str = ''
    details: List[str] = []
    breakdown: Dict[str, int] = {}


class WaveStatistics(BaseModel):
    total_waves: int = 0
    avg_change: float = 0.0
    max_change: float = 0.0
    min_change: float = 0.0
    avg_duration: int = 0
    impulse_waves: int = 0
    corrective_waves: int = 0


class SubwaveEstimate(BaseModel):
    label: WaveLabel
    expected_subwaves: int
    estimated_subwaves: int


class AnalysisResult(BaseModel):
    status: Literal['ok'] = 'ok'
    symbol: Optional[str] = None
    current_wave: WaveLabel
    confidence: int
    confidence_level: str
    action: str
    suggestion_text: str
    reason: str = ''
    waves: List[Wave]
    discarded_waves: List[Wave] = []
    pivots: List[Pivot] = []
    is_uptrend: bool
    trend: str
    rules: List[RuleCheck]
    guidelines: List[GuidelineCheck] = []
    divergence: DivergenceResult
    targets: TargetSet
    technicals: TechnicalSnapshot
    statistics: WaveStatistics
    subwaves: List[SubwaveEstimate] = []
    multi_view: MultiViewBreakdown
    details: List[str] = []
    knowledge: Dict[str, Any] = {}


class InsufficientDataResult(BaseModel):
    status: Literal['insufficient_data'] = 'insufficient_data'
    symbol: Optional[str] = None
    message: str
    bars_required: int
    bars_received: int
