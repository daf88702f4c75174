"""Headshot Studio backend: credit ledger and AI image generation API."""
