"""Accounts feature: per-user profile rows owned by the identity lifecycle."""
