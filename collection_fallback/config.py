"""Runtime settings for the collection fallback.

Defaults live in definitions/settings.yaml. Any field can be overridden
with an environment variable named COLLECTION_FALLBACK_<FIELD_NAME>, e.g.:
    COLLECTION_FALLBACK_EMBED_HOST=www.notion.so
    COLLECTION_FALLBACK_DETECTION_TIMEOUT_SECONDS=8
List fields take a comma-separated value.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFINITIONS_DIR = Path(__file__).parent / "definitions"
ENV_PREFIX = "COLLECTION_FALLBACK_"


class FallbackSettings(BaseModel):
    """Tunable constants for detection and fallback rendering."""

    # Embed target
    embed_scheme: str = Field(default="https", description="URL scheme of the embed target")
    embed_host: str = Field(default="www.notion.so", description="Host serving the embeddable view")
    source_tag: str = Field(
        default="collection_fallback",
        description="Value of the source= query parameter on URL variant 3",
    )
    id_separator: str = Field(
        default="-",
        description="Delimiter stripped from upstream ids before building embed URLs",
    )

    # Classification / resolution
    map_kinds: list[str] = Field(
        default_factory=lambda: ["map", "map_view", "map-view"],
        description="View kinds treated as the unsupported map kind",
    )
    container_block_types: list[str] = Field(
        default_factory=lambda: ["collection_view", "collection_view_page"],
        description="Block types that mark a view container in the content graph",
    )

    # Detection
    detection_timeout_seconds: float = Field(
        default=6.0,
        description="Upper bound on how long the detector watches before confirming",
    )
    diagnostic_logger: str = Field(
        default="collection_fallback.collaborator",
        description="Logger the collaborator reports through (used by LoggingBridge)",
    )

    # Sessions
    session_idle_ttl_seconds: float = Field(
        default=900.0,
        description="Idle time after which an HTTP session is unmounted (0 disables)",
    )

    # Fallback rendering
    frame_check_delay_seconds: float = Field(
        default=3.0,
        description="Delay between frame load and the secondary access check",
    )
    frame_height: str = "600px"
    frame_title: str = "Notion Map View"
    link_out_message: str = "This view can't be displayed here."
    link_out_label: str = "Open in Notion"


def _coerce_env(value: str, current: Any) -> Any:
    """Turn an env string into the shape of the existing field value."""
    if isinstance(current, list):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def load_settings(path: Optional[Path] = None) -> FallbackSettings:
    """Load settings from YAML, then apply environment overrides."""
    if path is None:
        path = DEFINITIONS_DIR / "settings.yaml"

    data: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    else:
        logger.warning(f"Settings file not found: {path}, using defaults")

    defaults = FallbackSettings().model_dump()
    for field_name in FallbackSettings.model_fields:
        env_value = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if env_value is not None:
            current = data.get(field_name, defaults[field_name])
            data[field_name] = _coerce_env(env_value, current)
            logger.debug(f"Setting {field_name} overridden from environment")

    return FallbackSettings.model_validate(data)


# Global settings instance
_settings: Optional[FallbackSettings] = None


def get_settings() -> FallbackSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads."""
    global _settings
    _settings = None
