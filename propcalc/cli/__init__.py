"""Command-line entry points for propcalc."""
