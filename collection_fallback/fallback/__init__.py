"""Fallback rendering through an embedded external frame.

Builds embed URLs from the resolved identity, retries less specific URL
forms when the frame fails to load, and degrades to a link-out when the
target's embedding policy rejects the frame.
"""
