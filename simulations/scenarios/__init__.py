"""
Simulation scenarios for comparing jitter strategies.

Scenarios:
- jitter_comparison: 1000 clients vs. 10/s and 100/s servers, varying jitter.
"""

from simulations.scenarios.jitter_comparison import (
    SCENARIOS,
    STRATEGIES,
)

__all__ = [
    "SCENARIOS",
    "STRATEGIES",
]
