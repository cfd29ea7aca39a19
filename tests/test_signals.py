"""Tests for the failure marker registry.

Markers are heuristic string matches against upstream wording that is
not stable. These tests pin the matching rules (case-insensitive
substring, per field), not the wording of any particular phrase.
"""
from collection_fallback.detection.schemas import DiagnosticMessage, SurfaceNode
from collection_fallback.detection.signals import SignalDefinitions, SignalRegistry

DEFINITIONS = SignalDefinitions(
    failure_phrases=["view unsupported"],
    surface_text_markers=["cannot show"],
    surface_class_fragments=["broken-view"],
    policy_block_markers=["refused"],
    cross_origin_markers=["cross-origin"],
    blank_frame_locations=["about:blank"],
)


def test_packaged_definitions_load(signals):
    definitions = signals.definitions
    assert definitions.failure_phrases
    assert definitions.surface_text_markers
    assert definitions.surface_class_fragments
    assert definitions.policy_block_markers
    assert definitions.cross_origin_markers


def test_missing_file_gives_empty_markers(tmp_path):
    registry = SignalRegistry(tmp_path / "none.yaml")
    assert registry.definitions.failure_phrases == []
    assert registry.match_diagnostic(DiagnosticMessage(message="anything")) is None


def test_custom_file(tmp_path):
    path = tmp_path / "signals.yaml"
    path.write_text("failure_phrases:\n  - kaputt\n")
    registry = SignalRegistry(path)
    assert registry.match_diagnostic(DiagnosticMessage(message="Renderer KAPUTT")) == "kaputt"


def test_matching_is_case_insensitive_substring():
    registry = SignalRegistry.from_definitions(DEFINITIONS)
    assert registry.match_diagnostic(DiagnosticMessage(message="Warning: View Unsupported (map)"))
    assert registry.match_node(SurfaceNode(text="We CANNOT SHOW this"))
    assert registry.match_node(SurfaceNode(class_names=["x", "notion-broken-view-icon"]))
    assert registry.match_node(SurfaceNode(attributes={"aria-label": "cannot show view"}))


def test_markers_only_match_their_own_field():
    registry = SignalRegistry.from_definitions(DEFINITIONS)
    assert registry.match_node(SurfaceNode(text="broken-view")) is None
    assert registry.match_diagnostic(DiagnosticMessage(message="cannot show")) is None


def test_blank_locations():
    registry = SignalRegistry.from_definitions(DEFINITIONS)
    assert registry.is_blank_location(" ABOUT:BLANK ")
    assert not registry.is_blank_location("https://www.notion.so/abc")
