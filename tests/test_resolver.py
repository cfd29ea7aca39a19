"""Tests for identifier resolution."""
from collection_fallback.identity.resolver import canonicalize_id, resolve_identity
from collection_fallback.views.schemas import CollectionRequest

from conftest import MAP_VIEW_RECORD_MAP


def _request(**props):
    return CollectionRequest.model_validate(props)


def test_graph_container_scan_strips_separator(settings):
    """No descriptor; the container block id is the content id, undelimited."""
    request = _request(record_map={"block": {"xyz-789": {"id": "xyz-789", "type": "collection_view"}}})
    identity = resolve_identity(request, settings)
    assert identity.content_id == "xyz789"
    assert identity.content_source == "graph_container"


def test_collection_view_page_is_a_container(settings):
    request = _request(record_map={"block": {"p-1": {"type": "page"}, "c-2": {"type": "collection_view_page"}}})
    assert resolve_identity(request, settings).content_id == "c2"


def test_block_id_beats_everything(settings):
    request = _request(block_id="aaa-111", hint_id="bbb-222", record_map=MAP_VIEW_RECORD_MAP)
    identity = resolve_identity(request, settings)
    assert identity.content_id == "aaa111"
    assert identity.content_source == "block_id"


def test_hint_id_beats_graph(settings):
    request = _request(hint_id="bbb-222", record_map=MAP_VIEW_RECORD_MAP)
    identity = resolve_identity(request, settings)
    assert identity.content_id == "bbb222"
    assert identity.content_source == "hint_id"


def test_format_pointer_is_last_resort(settings):
    request = _request(
        collection_view={"v-1": {"type": "map", "format": {"collection_pointer": {"id": "col-9"}}}},
        record_map={"block": {"p-1": {"type": "page"}}},
    )
    identity = resolve_identity(request, settings)
    assert identity.content_id == "col9"
    assert identity.content_source == "format_pointer"


def test_separator_only_ids_are_skipped(settings):
    request = _request(block_id="---", hint_id="hint-1")
    assert resolve_identity(request, settings).content_id == "hint1"


def test_nothing_resolvable_is_not_an_error(settings):
    identity = resolve_identity(_request(), settings)
    assert identity.content_id is None
    assert identity.view_id is None
    assert not identity.can_fall_back


def test_view_id_from_declared_record_id(settings):
    request = _request(collection_view={"view": {"id": "v1", "kind": "map"}}, block_id="abc123")
    identity = resolve_identity(request, settings)
    assert identity.view_id == "v1"
    assert identity.view_source == "declared_view"


def test_view_id_from_declared_key(settings):
    request = _request(collection_view={"v-7": {"type": "table"}})
    assert resolve_identity(request, settings).view_id == "v7"


def test_view_id_from_hint_list(settings):
    request = _request(block_id="abc", view_ids=["", "h-2"])
    identity = resolve_identity(request, settings)
    assert identity.view_id == "h2"
    assert identity.view_source == "view_hint"


def test_view_id_from_graph_index(settings):
    request = _request(record_map=MAP_VIEW_RECORD_MAP)
    identity = resolve_identity(request, settings)
    assert identity.view_id == "v1"
    assert identity.view_source == "graph_view_index"


def test_view_id_from_container_block(settings):
    request = _request(record_map={"block": {"c-1": {"type": "collection_view", "view_ids": ["cv-3"]}}})
    identity = resolve_identity(request, settings)
    assert identity.content_id == "c1"
    assert identity.view_id == "cv3"
    assert identity.view_source == "container_block"


def test_view_id_resolves_independently_of_content_id(settings):
    request = _request(view_ids=["v-1"])
    identity = resolve_identity(request, settings)
    assert identity.content_id is None
    assert identity.view_id == "v1"


def test_custom_separator(settings):
    custom = settings.model_copy(update={"id_separator": "_"})
    assert resolve_identity(_request(block_id="a_b_c"), custom).content_id == "abc"


def test_canonicalize_id():
    assert canonicalize_id("a-b-c") == "abc"
    assert canonicalize_id("  a-b ") == "ab"
    assert canonicalize_id("") is None
    assert canonicalize_id(None) is None
    assert canonicalize_id("--") is None


def test_identity_is_immutable(settings):
    identity = resolve_identity(_request(block_id="abc"), settings)
    updated = identity.with_view_id("v9", "diagnostic_payload")
    assert identity.view_id is None
    assert updated.view_id == "v9"
    assert updated.content_id == "abc"
