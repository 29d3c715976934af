"""Services around the rule engine."""
