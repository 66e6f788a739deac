"""Simulation configuration defaults."""
