"""
Elliott Rule Engine
Checks the three cardinal impulse rules and the scored guidelines
against a labeled wave cycle.

Cardinal rules:
1. Wave 2 never retraces beyond the origin of wave 1.
2. Wave 3 is never the shortest of waves 1, 3 and 5.
3. Wave 4 never enters the price territory of wave 1.

Guidelines (scored, never blocking):
- Alternation: waves 2 and 4 differ in sharpness.
- Wave 3 extension: wave 3 is at least 1.618 times wave 1.

A rule whose legs have not formed yet passes vacuously.
"""

import logging
from typing import Dict, List

from .models import Direction, GuidelineCheck, RuleCheck, RuleReport, WaveLabel
from .wave_labeler import WaveCycle

logger = logging.getLogger(__name__)

RULE_WAVE2_ORIGIN = "Wave 2 does not retrace beyond the origin of wave 1"
RULE_WAVE3_SHORTEST = "Wave 3 is not the shortest impulse wave"
RULE_WAVE4_OVERLAP = "Wave 4 does not overlap the price territory of wave 1"

GUIDELINE_ALTERNATION = "Alternation (waves 2 and 4 differ in form)"
GUIDELINE_EXTENSION = "Wave 3 extension (>= 1.618 x wave 1)"


class ElliottRuleEngine:
    def __init__(self, config: Dict):
        self.config = config
        rules_config = config.get('rules', {})
        self.sharp_correction_pct = rules_config.get('sharp_correction_pct', 10.0)
        self.wave3_extension_ratio = rules_config.get('wave3_extension_ratio', 1.618)
        logger.info(f"Initialized ElliottRuleEngine with sharp correction > {self.sharp_correction_pct}%, extension ratio {self.wave3_extension_ratio}")

    def check_rules(self, cycle: WaveCycle) -> RuleReport:
        """
        Evaluate the cardinal rules and guidelines for a cycle.

        Args:
            cycle: Labeled waves of the current cycle

        Returns:
            RuleReport with exactly three rule checks (in rule order) and
            zero to two guideline checks
        """
        w1 = cycle.find(WaveLabel.ONE)
        w2 = cycle.find(WaveLabel.TWO)
        w3 = cycle.find(WaveLabel.THREE)
        w4 = cycle.find(WaveLabel.FOUR)
        w5 = cycle.find(WaveLabel.FIVE)

        rules = [
            RuleCheck(rule=RULE_WAVE2_ORIGIN, detail="waves 1 and 2 not formed yet"),
            RuleCheck(rule=RULE_WAVE3_SHORTEST, detail="waves 1 and 3 not formed yet"),
            RuleCheck(rule=RULE_WAVE4_OVERLAP, detail="waves 1 and 4 not formed yet"),
        ]

        if w1 and w2:
            if w1.direction is Direction.UP:
                rules[0].passed = w2.end_price >= w1.start_price
                rules[0].detail = f"W1 origin: {w1.start_price:.2f}, W2 low: {w2.end_price:.2f}"
            else:
                rules[0].passed = w2.end_price <= w1.start_price
                rules[0].detail = f"W1 origin: {w1.start_price:.2f}, W2 high: {w2.end_price:.2f}"

        if w1 and w3 and w5:
            rules[1].passed = w3.abs_change >= w1.abs_change or w3.abs_change >= w5.abs_change
            rules[1].detail = f"W1: {w1.abs_change:.1f}%, W3: {w3.abs_change:.1f}%, W5: {w5.abs_change:.1f}%"
        elif w1 and w3:
            rules[1].passed = w3.abs_change >= w1.abs_change
            rules[1].detail = f"W1: {w1.abs_change:.1f}%, W3: {w3.abs_change:.1f}%"

        if w1 and w4:
            if w1.direction is Direction.UP:
                rules[2].passed = w4.end_price > w1.end_price
                rules[2].detail = f"W1 top: {w1.end_price:.2f}, W4 low: {w4.end_price:.2f}"
            else:
                rules[2].passed = w4.end_price < w1.end_price
                rules[2].detail = f"W1 bottom: {w1.end_price:.2f}, W4 high: {w4.end_price:.2f}"

        guidelines: List[GuidelineCheck] = []
        if w2 and w4:
            w2_sharp = w2.abs_change > self.sharp_correction_pct
            w4_sharp = w4.abs_change > self.sharp_correction_pct
            guidelines.append(GuidelineCheck(
                guideline=GUIDELINE_ALTERNATION,
                follows=w2_sharp != w4_sharp,
                detail=f"W2: {'sharp' if w2_sharp else 'sideways'}, W4: {'sharp' if w4_sharp else 'sideways'}",
            ))

        if w1 and w3 and w1.abs_change > 0:
            ratio = w3.abs_change / w1.abs_change
            guidelines.append(GuidelineCheck(
                guideline=GUIDELINE_EXTENSION,
                follows=ratio >= self.wave3_extension_ratio,
                detail=f"W3/W1 = {ratio:.2f}",
            ))

        failed = [r.rule for r in rules if not r.passed]
        if failed:
            logger.debug(f"Rule violations in {cycle!r}: {failed}")
        return RuleReport(rules=rules, guidelines=guidelines)
