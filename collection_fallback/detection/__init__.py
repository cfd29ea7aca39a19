"""Unsupported-render detection.

When the declared view kind is unknown, the wrapped renderer is allowed
to render while three independent channels watch for failure: the
render surface, the diagnostic stream, and a timeout.
"""
