"""Derive-on-read analytics over stored player snapshots (pure functions, no I/O)."""
