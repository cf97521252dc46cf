"""EOD delivery endpoint."""
