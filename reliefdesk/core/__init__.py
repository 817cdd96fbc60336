"""Core engines: validation, calculators, eligibility scoring and workflows."""
