"""Venue booking reservation and pricing engine."""
