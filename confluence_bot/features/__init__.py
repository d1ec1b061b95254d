"""Bar features: indicator columns and structural derivations."""

from confluence_bot.features.indicators import compute_indicators
from confluence_bot.features.structure import (
    classify_trend,
    detect_divergence,
    enrich_bars,
    frame_to_bars,
    mark_swings,
)

__all__ = [
    "compute_indicators",
    "classify_trend",
    "detect_divergence",
    "enrich_bars",
    "frame_to_bars",
    "mark_swings",
]
