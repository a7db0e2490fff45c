"""Incident lifecycle engine."""
