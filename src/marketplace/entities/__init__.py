"""Persisted marketplace concepts, one package per table."""
