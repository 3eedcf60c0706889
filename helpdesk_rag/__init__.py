"""Hybrid retrieval-augmented context pipeline for a support assistant."""
