"""Incident notification routing and delivery."""
