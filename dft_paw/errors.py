"""
Exception types raised by the PAW core.
"""


class ConfigurationError(ValueError):
    """Invalid dimensions, unreadable or malformed setup data, bad atom types."""


class DomainError(ValueError):
    """Argument outside the domain of a Legendre / spherical harmonic evaluator."""
