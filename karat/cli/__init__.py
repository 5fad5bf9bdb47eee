"""Command-line interface for Karat."""
