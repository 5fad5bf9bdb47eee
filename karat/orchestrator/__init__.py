"""Orchestration: security gate, modes, extraction, validation and execution."""
