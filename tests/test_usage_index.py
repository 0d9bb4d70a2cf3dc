"""Tests del índice de uso."""
import pytest

from config import Config
from src.usage import (
    NodeBinding,
    UsageEntry,
    UsageIndex,
    bindings_from_records,
    build_index,
    index_from_scan_response,
)


class TestBuildIndex:

    def test_repeated_pairs_are_merged(self):
        index = build_index([
            {"variable": "v1", "component": "Button", "nodes": ["n1"]},
            {"variable": "v1", "component": "Button", "nodes": ["n2"]},
        ])
        entries = index.entries_for("v1")
        assert len(entries) == 1
        assert entries[0].component_name == "Button"
        assert entries[0].node_ids == ["n1", "n2"]

    def test_duplicate_nodes_not_repeated(self):
        index = build_index([
            {"variable": "v1", "component": "Button", "nodes": ["n1", "n2"]},
            {"variable": "v1", "component": "Button", "nodes": ["n2"]},
        ])
        assert index.total_nodes("v1") == 2

    def test_large_scan_keeps_first_seen_order(self):
        records = [
            {"variable": "v1", "component": "Button", "nodes": [f"n{i % 50}" for i in range(start, start + 100)]}
            for start in range(0, 1000, 100)
        ]
        index = build_index(records)
        (entry,) = index.entries_for("v1")
        assert entry.node_ids == [f"n{i}" for i in range(50)]
        assert index.node_ids("v1") == entry.node_ids

    def test_entry_built_with_repeated_nodes(self):
        entry = UsageEntry(component_name="Card", node_ids=["n1", "n2", "n1"], variable_id="v1")
        entry.add_nodes(["n2", "n3"])
        assert entry.node_ids == ["n1", "n2", "n3"]

    def test_unbound_nodes_use_sentinel(self, bindings):
        index = build_index(bindings)
        assert [e.component_name for e in index.unbound_entries("v3")] == [Config.UNBOUND_COMPONENT]
        assert index.named_entries("v3") == []
        assert index.entries_for("v3")[0].is_unbound

    def test_records_without_identity_ignored(self):
        index = build_index([{"component": "Button", "nodes": ["n1"]}])
        assert len(index) == 0

    def test_accepts_bindings_and_records(self):
        index = build_index([
            NodeBinding(variable_id="v1", component_name="Card", node_ids=("n1",)),
            {"variableId": "v1", "componentName": "Card", "nodeIds": ["n2"]},
        ])
        assert index.node_ids("v1") == ["n1", "n2"]

    def test_grouped_scan_records(self):
        records = [{
            "variableId": "v1",
            "variableName": "primary",
            "components": [
                {"componentName": "Button", "nodeIds": ["n1"]},
                {"componentName": "Chip", "nodeIds": ["n2"]},
            ],
        }]
        bindings = bindings_from_records(records)
        assert [b.component_name for b in bindings] == ["Button", "Chip"]
        assert all(b.variable_id == "v1" for b in bindings)

    def test_scan_response_includes_text_styles(self):
        index = index_from_scan_response({
            "variables": [{"variableId": "v1", "componentName": "Button", "nodeIds": ["n1"]}],
            "textStyles": [{"styleId": "S:heading", "componentName": "Title", "nodeIds": ["n9"]}],
        })
        assert set(index.identities()) == {"v1", "S:heading"}
        assert index.entries_for("S:heading")[0].style_id == "S:heading"

    def test_components_and_graph(self, bindings):
        index = build_index(bindings)
        assert index.components() == sorted(["Button", "Card", Config.UNBOUND_COMPONENT])

        graph = index.to_graph()
        edge = graph.edges["v1", "component:Button"]
        assert edge["node_ids"] == ["n1", "n2"]
        assert edge["node_count"] == 2


class TestChunkedBuild:

    def test_progress_reported_per_chunk(self, bindings):
        progress = []
        UsageIndex.build(
            bindings_from_records(bindings),
            chunk_size=3,
            on_progress=lambda done, total: progress.append((done, total)),
        )
        assert progress == [(3, 4), (4, 4)]

    def test_cancellation_discards_partial_index(self, bindings):
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 1

        index = UsageIndex.build(bindings_from_records(bindings), chunk_size=2, should_cancel=should_cancel)
        assert index is None

    @pytest.mark.asyncio
    async def test_async_build_matches_sync(self, bindings):
        records = bindings_from_records(bindings)
        async_index = await UsageIndex.build_async(records, chunk_size=1)
        assert async_index.to_dict() == UsageIndex.build(records).to_dict()

    @pytest.mark.asyncio
    async def test_async_build_cancelled(self, bindings):
        index = await UsageIndex.build_async(
            bindings_from_records(bindings), chunk_size=1, should_cancel=lambda: True
        )
        assert index is None
