"""Tests for scope resolution and edge filtering."""

import random

import pytest

from canvasshot.canvas import MemoryCanvas, MemoryEdge, MemoryNode
from canvasshot.exceptions import EmptySelectionError
from canvasshot.request import ExportScope
from canvasshot.selection import filter_edges, resolve_selection
from tests.conftest import make_board


def _ids(items):
    return [item.id for item in items]


class TestResolveSelection:
    def test_whole_canvas(self, board):
        assert _ids(resolve_selection(board, ExportScope.all())) == ["A", "B", "C"]

    def test_subset_keeps_canvas_order(self, board):
        assert _ids(resolve_selection(board, ExportScope.of(["C", "A"]))) == ["A", "C"]

    def test_deleted_ids_dropped(self, board):
        board.remove_node("B")
        assert _ids(resolve_selection(board, ExportScope.of(["A", "B"]))) == ["A"]

    def test_empty_canvas(self):
        with pytest.raises(EmptySelectionError) as exc_info:
            resolve_selection(MemoryCanvas(), ExportScope.all())
        assert exc_info.value.requested is None
        assert "no nodes" in str(exc_info.value)

    def test_all_selected_nodes_gone(self, board):
        with pytest.raises(EmptySelectionError) as exc_info:
            resolve_selection(board, ExportScope.of(["ghost", "phantom"]))
        assert exc_info.value.requested == ["ghost", "phantom"]

    def test_empty_selection(self, board):
        with pytest.raises(EmptySelectionError, match="no nodes are selected"):
            resolve_selection(board, ExportScope.of([]))


class TestFilterEdges:
    def test_both_endpoints_required(self, board):
        nodes = [board.nodes["A"], board.nodes["C"]]
        assert filter_edges(board.edges.values(), nodes) == []

    def test_edge_kept(self, board):
        nodes = [board.nodes["A"], board.nodes["B"]]
        assert _ids(filter_edges(board.edges.values(), nodes)) == ["e1"]

    def test_parallel_edges_and_self_loops(self):
        canvas = MemoryCanvas()
        a = canvas.add_node(MemoryNode("a", 0, 0, 10, 10))
        b = canvas.add_node(MemoryNode("b", 50, 0, 10, 10))
        canvas.add_edge(MemoryEdge("ab1", a, b))
        canvas.add_edge(MemoryEdge("ab2", a, b))
        canvas.add_edge(MemoryEdge("loop", a, a))
        canvas.add_edge(MemoryEdge("ba", b, a))

        assert _ids(filter_edges(canvas.edges.values(), [a, b])) == ["ab1", "ab2", "loop", "ba"]
        assert _ids(filter_edges(canvas.edges.values(), [a])) == ["loop"]

    def test_idempotent(self, board):
        nodes = [board.nodes["A"], board.nodes["B"]]
        once = filter_edges(board.edges.values(), nodes)
        assert filter_edges(once, nodes) == once

    def test_order_independent_of_node_order(self):
        canvas = make_board()
        nodes = list(canvas.nodes.values())
        shuffled = nodes[:]
        random.Random(7).shuffle(shuffled)
        edges = list(canvas.edges.values())
        assert filter_edges(edges, nodes) == filter_edges(edges, shuffled)

    def test_no_edges(self, board):
        assert filter_edges([], board.nodes.values()) == []
