"""stepup: step-up (two-factor) authentication engine."""

__version__ = "0.1.0"
