# errors.py
# Exception taxonomy.  Everything derives from ValueError so callers that
# already guard pricer inputs with ``except ValueError`` keep working.

from __future__ import annotations


__all__ = [
    "ConfigurationError",
    "InsufficientDataError",
    "UnknownVariantError",
]


class ConfigurationError(ValueError):
    """An invalid configuration value (probability, population size, weight...)."""


class InsufficientDataError(ValueError):
    """Not enough samples to compute the requested quantity."""


class UnknownVariantError(ValueError):
    """Unrecognised enumerator (strategy, crossover type, algorithm...)."""
