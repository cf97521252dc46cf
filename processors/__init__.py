"""Aggregation stages: window, branch selection, commit collection, dedupe, digest."""
