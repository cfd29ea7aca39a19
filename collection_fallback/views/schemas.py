"""View metadata schemas — read-only request data for a collection render.

The content-graph provider hands us records in its own wire shape:
records are often wrapped as {"value": {...}}, views use "type" for
their kind, and the graph uses "block" / "collection_view" as keys.
These models accept that shape as well as the plain field names.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


def _unwrap_value(data: Any) -> Any:
    """Unwrap the provider's {"value": {...}} record envelope."""
    if isinstance(data, dict) and "value" in data and isinstance(data["value"], dict):
        return data["value"]
    return data


class CollectionPointer(BaseModel):
    """Pointer from a view to the collection it displays."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    table: Optional[str] = None


class ViewFormat(BaseModel):
    """Format metadata attached to a view record."""

    model_config = ConfigDict(extra="allow")

    collection_pointer: Optional[CollectionPointer] = None


class ViewRecord(BaseModel):
    """A single named view (table, board, map, ...)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    kind: str = Field(
        default="",
        validation_alias=AliasChoices("kind", "type"),
        description="Declared rendering mode, e.g. 'table', 'board', 'map'",
    )
    format: Optional[ViewFormat] = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap(cls, data: Any) -> Any:
        return _unwrap_value(data)


class BlockRecord(BaseModel):
    """A content-graph block; only the fields we navigate by."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str = ""
    view_ids: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _unwrap(cls, data: Any) -> Any:
        return _unwrap_value(data)


class ViewDescriptor(BaseModel):
    """One or more named view records, in declaration order."""

    views: dict[str, ViewRecord] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_raw_mapping(cls, data: Any) -> Any:
        # The provider sends {view_key: record}, not {"views": {...}}
        if isinstance(data, dict) and "views" not in data:
            return {"views": data}
        return data

    def first(self) -> Optional[tuple[str, ViewRecord]]:
        """First declared (key, view) pair, if any."""
        for key, view in self.views.items():
            return key, view
        return None


class ContentGraph(BaseModel):
    """Block graph backing a page, plus the graph-level view index."""

    model_config = ConfigDict(populate_by_name=True)

    blocks: dict[str, BlockRecord] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("blocks", "block"),
    )
    views: dict[str, ViewRecord] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("views", "collection_view"),
    )


class CollectionRequest(BaseModel):
    """Props for one collection render request.

    Field names are accepted in snake_case or the host's camelCase.
    Anything not modelled here is kept (extra="allow") and handed to the
    collaborator untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    descriptor: Optional[ViewDescriptor] = Field(
        default=None,
        validation_alias=AliasChoices("descriptor", "collection_view", "collectionView"),
    )
    graph: Optional[ContentGraph] = Field(
        default=None,
        validation_alias=AliasChoices("graph", "record_map", "recordMap"),
    )
    block_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("block_id", "blockId"),
        description="Identifier of the container block, when the host knows it",
    )
    hint_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("hint_id", "hintId"),
        description="Secondary content identifier hint",
    )
    view_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("view_ids", "viewIds"),
        description="View identifier hints, most specific first",
    )
