"""Core modules, always activated first and never skipped."""
