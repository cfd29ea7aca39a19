"""Resolved identity — the external ids a fallback embed is built from."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ResolvedIdentity(BaseModel):
    """Content and view identifiers for one request.

    content_id is required for any fallback; view_id only improves it.
    Both are already canonical (separator removed).
    """

    model_config = ConfigDict(frozen=True)

    content_id: Optional[str] = None
    view_id: Optional[str] = None
    content_source: Optional[str] = Field(
        default=None,
        description="Which source yielded content_id: 'block_id', 'hint_id', "
        "'graph_container', 'format_pointer'",
    )
    view_source: Optional[str] = Field(
        default=None,
        description="Which source yielded view_id: 'declared_view', 'view_hint', "
        "'graph_view_index', 'container_block', 'diagnostic_payload'",
    )

    @property
    def can_fall_back(self) -> bool:
        return bool(self.content_id)

    def with_view_id(self, view_id: str, source: str) -> "ResolvedIdentity":
        """Copy with a view id recovered after resolution."""
        return self.model_copy(update={"view_id": view_id, "view_source": source})
