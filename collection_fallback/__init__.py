"""Collection fallback - embedded fallback for unsupported collection views.

Wraps a third-party collection renderer and substitutes an embedded
external view when the wrapped renderer cannot display the requested one:
- View classification from declared metadata
- Content/view identifier resolution
- Unsupported-render detection from weak signals
- Embedded-frame fallback with URL retries and link-out degradation
"""

__version__ = "0.1.0"
