"""
Exceptions raised around the wave engine.

The engine itself never raises for short or degenerate price data; these
cover the layers that gather and validate that data.
"""


class WaveAnalysisError(Exception):
    """Base exception for wave analysis errors"""
    pass


class HistoryUnavailableError(WaveAnalysisError):
    """No price history could be produced for a symbol"""
    pass


class InvalidHistoryError(WaveAnalysisError):
    """Price history rows could not be turned into price bars"""
    pass
