"""Signal registry — failure markers loaded from YAML.

The markers follow upstream wording that changes without notice.
Matching is best-effort: a lowercase substring search, nothing more.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

import yaml
from pydantic import BaseModel, Field

from .schemas import DiagnosticMessage, SurfaceChange, SurfaceNode

logger = logging.getLogger(__name__)

DEFINITIONS_DIR = Path(__file__).parent.parent / "definitions"


class SignalDefinitions(BaseModel):
    """Marker lists, as stored in signals.yaml."""

    failure_phrases: list[str] = Field(default_factory=list)
    surface_text_markers: list[str] = Field(default_factory=list)
    surface_class_fragments: list[str] = Field(default_factory=list)
    policy_block_markers: list[str] = Field(default_factory=list)
    cross_origin_markers: list[str] = Field(default_factory=list)
    blank_frame_locations: list[str] = Field(default_factory=list)


def _contains_any(haystack: str, needles: Iterable[str]) -> Optional[str]:
    """Return the first needle found in haystack (case-insensitive)."""
    lowered = haystack.lower()
    for needle in needles:
        if needle and needle.lower() in lowered:
            return needle
    return None


class SignalRegistry:
    """Loads failure markers and matches them against observed output."""

    def __init__(self, definitions_file: Optional[Path] = None):
        if definitions_file is None:
            definitions_file = DEFINITIONS_DIR / "signals.yaml"
        self.definitions_file = definitions_file
        self._definitions = SignalDefinitions()
        self._load()

    def _load(self) -> None:
        """Load markers from the YAML file."""
        if self.definitions_file is None:
            return
        if not self.definitions_file.exists():
            logger.warning(f"Signals file not found: {self.definitions_file}")
            return

        with open(self.definitions_file) as f:
            data = yaml.safe_load(f) or {}

        try:
            self._definitions = SignalDefinitions(**data)
        except Exception as e:
            logger.error(f"Failed to load signal definitions: {e}")
            return

        logger.info(
            f"Loaded {len(self._definitions.failure_phrases)} failure phrases, "
            f"{len(self._definitions.surface_text_markers)} surface markers"
        )

    @classmethod
    def from_definitions(cls, definitions: SignalDefinitions) -> "SignalRegistry":
        """Build a registry from in-memory definitions (no file access)."""
        registry = cls.__new__(cls)
        registry.definitions_file = None
        registry._definitions = definitions
        return registry

    @property
    def definitions(self) -> SignalDefinitions:
        return self._definitions

    def match_node(self, node: SurfaceNode) -> Optional[str]:
        """Failure marker present in a rendered node, if any."""
        hit = _contains_any(node.text, self._definitions.surface_text_markers)
        if hit:
            return f"text '{hit}'"
        for class_name in node.class_names:
            hit = _contains_any(class_name, self._definitions.surface_class_fragments)
            if hit:
                return f"class '{class_name}'"
        for value in node.attributes.values():
            hit = _contains_any(value, self._definitions.surface_text_markers)
            if hit:
                return f"attribute '{hit}'"
        return None

    def match_change(self, change: SurfaceChange) -> Optional[str]:
        """Failure marker carried by a surface change, if any."""
        return self.match_node(change.node)

    def match_diagnostic(self, message: DiagnosticMessage) -> Optional[str]:
        """Failure phrase in a diagnostic message, if any."""
        return _contains_any(message.message, self._definitions.failure_phrases)

    def match_policy_block(self, text: str) -> Optional[str]:
        return _contains_any(text, self._definitions.policy_block_markers)

    def match_cross_origin(self, text: str) -> Optional[str]:
        return _contains_any(text, self._definitions.cross_origin_markers)

    def is_blank_location(self, location: str) -> bool:
        lowered = location.strip().lower()
        return any(
            lowered == blank.lower() or lowered.startswith(blank.lower())
            for blank in self._definitions.blank_frame_locations
        )

    def reload(self) -> None:
        """Reload markers from disk."""
        self._definitions = SignalDefinitions()
        self._load()


# Global registry instance
_registry: Optional[SignalRegistry] = None


def get_signal_registry() -> SignalRegistry:
    """Get the global signal registry instance."""
    global _registry
    if _registry is None:
        _registry = SignalRegistry()
    return _registry
