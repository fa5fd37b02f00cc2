"""
Wave Advisor
Wave knowledge base and the per-wave trading guidance built on it.
"""

import logging
from typing import Any, Dict, List

from .models import TargetSet, TechnicalSnapshot, WaveLabel

logger = logging.getLogger(__name__)

WAVE_KNOWLEDGE: Dict[WaveLabel, Dict[str, Any]] = {
    WaveLabel.ONE: {
        'name': 'Wave 1 - Impulse Start',
        'description': 'The first advance of a new trend, driven by a small group buying what they see as cheap.',
        'psychology': 'Doubt and hesitation; a few start building positions',
        'volume_pattern': 'Modest, gradually rising volume',
        'fibonacci': 'Typically 0.382-0.618 of the whole impulse',
        'key_indicators': {
            'rsi': 'Recovers from oversold and crosses 30',
            'macd': 'Histogram turns from negative to positive',
            'volume': 'Moderate expansion',
        },
        'rules': [
            'Often mistaken for a bear-market rally',
            'Avoid heavy positions this early',
        ],
    },
    WaveLabel.TWO: {
        'name': 'Wave 2 - Correction',
        'description': 'Profit taking retraces wave 1 but never below its origin.',
        'psychology': 'Fear returns; many believe the advance is over',
        'volume_pattern': 'Volume contracts',
        'fibonacci': 'Retraces 0.382-0.786 of wave 1 (0.618 most common)',
        'key_indicators': {
            'rsi': 'Falls back but holds above 20',
            'macd': 'Histogram shrinks',
            'volume': 'Clearly lower',
        },
        'rules': [
            'Never retraces beyond the origin of wave 1 (cardinal rule)',
            'Usually retraces 50%-61.8%',
            'Common forms: zigzag, flat',
        ],
    },
    WaveLabel.THREE: {
        'name': 'Wave 3 - Strongest Impulse',
        'description': 'The longest and strongest advance; the trend becomes obvious and the public joins.',
        'psychology': 'Optimism and greed, chasing strength',
        'volume_pattern': 'Highest volume of the cycle',
        'fibonacci': 'Typically 1.618-2.618 times wave 1 (1.618 most common)',
        'key_indicators': {
            'rsi': 'Holds above 50, often breaks 70',
            'macd': 'Longest histogram bars',
            'volume': 'Peak volume',
        },
        'rules': [
            'Never the shortest impulse wave (cardinal rule)',
            'Usually the longest and strongest impulse wave',
            'Price gaps are common',
        ],
    },
    WaveLabel.FOUR: {
        'name': 'Wave 4 - Consolidation',
        'description': 'Profit taking pauses the trend before the final push.',
        'psychology': 'Hesitation and disagreement',
        'volume_pattern': 'Volume declines',
        'fibonacci': 'Retraces 0.236-0.5 of wave 3 (0.382 most common)',
        'key_indicators': {
            'rsi': 'Eases back to the 40-50 zone',
            'macd': 'Histogram shrinks but stays positive',
            'volume': 'Clearly lower',
        },
        'rules': [
            'Never enters the price territory of wave 1 (cardinal rule)',
            'Usually retraces 23.6%-38.2%',
            'Common forms: triangle, flat, complex',
        ],
    },
    WaveLabel.FIVE: {
        'name': 'Wave 5 - Final Push',
        'description': 'The last advance; less rational, with fading momentum.',
        'psychology': 'Euphoria and fear of missing out',
        'volume_pattern': 'Price rises on falling volume',
        'fibonacci': 'Typically 0.618-1.0 times wave 1, often equal to it',
        'key_indicators': {
            'rsi': 'Divergence: new price high without a new RSI high',
            'macd': 'Divergence: new price high without a new MACD high',
            'volume': 'Divergence: new price high on shrinking volume',
        },
        'rules': [
            'Usually weaker than wave 3',
            'Indicator divergence is common',
            'Can fail to make a new high (truncation)',
        ],
    },
    WaveLabel.A: {
        'name': 'Wave A - Decline Start',
        'description': 'The decline begins, but most still treat it as a normal pullback.',
        'psychology': 'Denial and hope, buying the dip',
        'volume_pattern': 'Volume may expand',
        'fibonacci': 'Retraces 0.382-0.5 of the whole impulse (1-5)',
        'key_indicators': {
            'rsi': 'Breaks below 50',
            'macd': 'Bearish crossover',
            'volume': 'May expand',
        },
        'rules': [
            'Can unfold in five waves (impulsive) or three (corrective)',
            'Averaging down here is a common mistake',
        ],
    },
    WaveLabel.B: {
        'name': 'Wave B - Bull Trap',
        'description': 'A weak rebound against wave A on light volume, a classic bull trap.',
        'psychology': 'False optimism; buyers get trapped',
        'volume_pattern': 'Volume contracts',
        'fibonacci': 'Rebounds 0.382-0.786 of wave A',
        'key_indicators': {
            'rsi': 'Bounces but stays below 50',
            'macd': 'Histogram shrinks',
            'volume': 'Light',
        },
        'rules': [
            'The hardest wave to identify',
            'Usually smaller than wave A',
            'Often the last chance to exit',
        ],
    },
    WaveLabel.C: {
        'name': 'Wave C - Main Decline',
        'description': 'The most destructive decline: strong, deep and prolonged.',
        'psychology': 'Panic, despair and capitulation',
        'volume_pattern': 'Volume expands',
        'fibonacci': 'Typically 1.0-1.618 times wave A',
        'key_indicators': {
            'rsi': 'Drops into oversold (< 30)',
            'macd': 'Longest negative histogram bars',
            'volume': 'Capitulation volume',
        },
        'rules': [
            'Usually 1.0-1.618 times the length of wave A',
            'Panic selling is common',
            'A new up cycle starts when it ends',
        ],
    },
}

ACTIONS = {
    WaveLabel.ONE: 'light position',
    WaveLabel.TWO: 'wait for entry',
    WaveLabel.THREE: 'hold / add',
    WaveLabel.FOUR: 'reduce and wait',
    WaveLabel.FIVE: 'scale out',
    WaveLabel.A: 'cut losses / reduce',
    WaveLabel.B: 'sell into strength',
    WaveLabel.C: 'stay out',
}


class WaveAdvisor:
    """Turns a wave reading plus targets into an action and a short narrative."""

    def advise(self, current_wave: WaveLabel, targets: TargetSet, technicals: TechnicalSnapshot) -> Dict[str, Any]:
        """
        Returns a dict with 'action', 'summary', 'details' and 'knowledge'.
        """
        knowledge = WAVE_KNOWLEDGE[current_wave]
        details = self._details(current_wave, targets, technicals)
        return {
            'action': ACTIONS[current_wave],
            'summary': knowledge['description'],
            'details': details,
            'knowledge': knowledge,
        }

    @staticmethod
    def _details(wave: WaveLabel, targets: TargetSet, technicals: TechnicalSnapshot) -> List[str]:
        levels = targets.fib_levels
        details: List[str] = []

        if wave is WaveLabel.ONE:
            details.append("Suggested exposure: 10-20% of capital")
            details.append(f"Stop-loss: {targets.stop_loss:.2f} (below the wave 1 origin)")
            details.append(f"Target: {targets.target_up:.2f} (projected wave 3)")
            details.append("Watch for expanding volume to confirm the breakout")
        elif wave is WaveLabel.TWO:
            details.append("Best entry zone: 50%-61.8% Fibonacci retracement")
            for level in levels:
                details.append(f"  {level.label}: {level.price:.2f}")
            details.append(f"Stop-loss: {targets.stop_loss:.2f} (wave 1 origin)")
            details.append("Watch for shrinking volume on dips and rising volume on bounces")
        elif wave is WaveLabel.THREE:
            details.append("The strongest and longest impulse wave")
            first = levels[0].price if levels else targets.target_up
            details.append(f"First target: {first:.2f}")
            if len(levels) > 2:
                details.append(f"Extended target: {levels[2].price:.2f}")
            details.append(f"Trailing stop: {targets.stop_loss:.2f} (wave 2 low)")
            details.append("Add on breakouts confirmed by volume")
        elif wave is WaveLabel.FOUR:
            details.append("Consider trimming a third of the position")
            if len(levels) > 1:
                details.append(f"Support zone: {levels[1].price:.2f} - {levels[0].price:.2f}")
            details.append(f"Hard stop: {targets.stop_loss:.2f} (wave 1 top)")
            details.append("Wait for a wave 5 signal while volume stays light")
        elif wave is WaveLabel.FIVE:
            details.append("Momentum is fading, watch for divergence")
            details.append(f"Projected high: {targets.target_up:.2f}")
            details.append("Take profits in thirds")
            if technicals.rsi_divergence:
                details.append("Warning: RSI divergence present")
            if technicals.macd_divergence:
                details.append("Warning: MACD divergence present")
        elif wave is WaveLabel.A:
            details.append("A decline has started; most will call it a pullback")
            details.append(f"Projected low: {targets.target_down:.2f}")
            details.append("Cut losses or reduce by at least half, do not average down")
        elif wave is WaveLabel.B:
            details.append("Bull trap warning: this rebound is likely to fail")
            details.append(f"Rebound target: {targets.target_up:.2f} (reference only)")
            details.append("Do not chase; use strength to exit")
        else:
            details.append("The main decline, the most damaging wave")
            details.append(f"Projected low: {targets.target_down:.2f} (1-1.618 x wave A)")
            details.append("Stay out until capitulation selling stops")
        return details
