"""Command line interface for HealthBot."""
