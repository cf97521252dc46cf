"""Debug report endpoint."""
