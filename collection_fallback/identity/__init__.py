"""Identifier resolution for fallback embeds."""
