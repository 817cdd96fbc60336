"""Relief program definitions and the intake questionnaire."""
