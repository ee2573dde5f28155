"""Click commands for shipctl."""
