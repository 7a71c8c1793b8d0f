"""Read-only views over stored history."""
