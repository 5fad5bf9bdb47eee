"""Request identity helpers."""
