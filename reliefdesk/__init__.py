"""Tax debt relief eligibility screening and guided applications."""

__version__ = "0.1.0"
