"""Test fixtures for cytometree.

Provides synthetic event generators and test utilities.
"""

from .mock_events import (
    create_bimodal_events,
    create_four_population_events,
    create_population_events,
    create_unimodal_events,
)

__all__ = [
    "create_bimodal_events",
    "create_four_population_events",
    "create_population_events",
    "create_unimodal_events",
]
