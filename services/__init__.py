"""Lambda handlers exposing the debug report and EOD delivery over API Gateway."""
