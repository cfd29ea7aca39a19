"""View metadata and classification.

Views describe how a collection is displayed (table, board, map, ...).
The classifier reads the declared kind so the map kind, which the
wrapped renderer cannot display, can be routed to the fallback.
"""
