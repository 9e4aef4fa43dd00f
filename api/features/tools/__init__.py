"""Tools feature: escalation and third-party tool dispatch for a conversation."""
