"""
Confidence Scorer
Blends rule compliance, guideline adherence, indicator confirmation and
risk/reward into a single 0-100 score for a wave count.
"""

import logging
from typing import Dict, List, Optional

from .models import ConfidenceReport, RuleReport, TargetSet, TechnicalSnapshot, WaveLabel
from .wave_labeler import WaveCycle

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    'base': 50,
    'rule_pass': 10,
    'guideline_follow': 5,
    'rsi_confirm': 5,
    'macd_confirm': 5,
    'rsi_divergence': -10,
    'macd_divergence': -10,
    'risk_reward_excellent': 3.0,
    'risk_reward_excellent_bonus': 10,
    'risk_reward_good': 2.0,
    'risk_reward_good_bonus': 5,
    'risk_reward_poor': 1.0,
    'risk_reward_poor_penalty': -5,
}

DEFAULT_LEVELS = [[80, 'very high'], [65, 'high'], [50, 'medium'], [35, 'low'], [0, 'very low']]


class ConfidenceScorer:
    """
    Scores a wave count. Weights come from the `confidence` config section;
    missing keys fall back to DEFAULT_WEIGHTS.
    """
    def __init__(self, config: Dict):
        self.config = config
        conf_config = dict(config.get('confidence', {}))
        self.levels = sorted(conf_config.pop('levels', DEFAULT_LEVELS), key=lambda lv: lv[0], reverse=True)
        self.weights = {**DEFAULT_WEIGHTS, **conf_config}
        logger.info(f"Initialized ConfidenceScorer with weights: {self.weights}")

    def level_for(self, score: int) -> str:
        for threshold, name in self.levels:
            if score >= threshold:
                return name
        return self.levels[-1][1]

    def _risk_reward_adjustment(self, rr: Optional[float]) -> int:
        if rr is None:
            return 0
        w = self.weights
        if rr >= w['risk_reward_excellent']:
            return w['risk_reward_excellent_bonus']
        if rr >= w['risk_reward_good']:
            return w['risk_reward_good_bonus']
        if rr < w['risk_reward_poor']:
            return w['risk_reward_poor_penalty']
        return 0

    def score(self, cycle: WaveCycle, rule_report: RuleReport, technicals: TechnicalSnapshot,
              targets: TargetSet, current_wave: WaveLabel) -> ConfidenceReport:
        """
        Compute the confidence score.

        Args:
            cycle: Labeled waves of the current cycle
            rule_report: Rule and guideline results
            technicals: Indicator snapshot with confirmation flags
            targets: Projected targets (for risk/reward)
            current_wave: Wave in progress

        Returns:
            ConfidenceReport with the clamped score, its level and a
            per-component breakdown; action and details are left to the advisor
        """
        w = self.weights
        rules = rule_report.passed_rules * w['rule_pass']
        guidelines = rule_report.followed_guidelines * w['guideline_follow']

        tech = 0
        if technicals.rsi_confirm:
            tech += w['rsi_confirm']
        if technicals.macd_confirm:
            tech += w['macd_confirm']
        if technicals.rsi_divergence:
            tech += w['rsi_divergence']
        if technicals.macd_divergence:
            tech += w['macd_divergence']

        rr = self._risk_reward_adjustment(targets.risk_reward)
        raw = w['base'] + rules + guidelines + tech + rr
        score = int(round(max(0, min(100, raw))))

        breakdown = {
            'base': int(w['base']),
            'rules': int(rules),
            'guidelines': int(guidelines),
            'technicals': int(tech),
            'risk_reward': int(rr),
        }
        details: List[str] = []
        if raw != score:
            details.append(f"raw score {raw} clamped to {score}")

        logger.debug(f"Confidence for wave {current_wave} in {cycle!r}: {score} {breakdown}")
        return ConfidenceReport(score=score, level=self.level_for(score), details=details, breakdown=breakdown)
