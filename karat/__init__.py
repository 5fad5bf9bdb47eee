"""Karat: conversational action pipeline for a jewelry-shop back office."""
