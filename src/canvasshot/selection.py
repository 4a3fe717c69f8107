"""Resolve the export scope into nodes and the edges they fully contain."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import networkx as nx

from canvasshot.exceptions import EmptySelectionError

if TYPE_CHECKING:
    from canvasshot.canvas import Canvas, CanvasEdge, CanvasNode
    from canvasshot.request import ExportScope


def resolve_selection(canvas: Canvas, scope: ExportScope) -> list[CanvasNode]:
    """Return the live nodes covered by *scope*, in canvas order.

    Ids that no longer match a node (deleted since the selection was
    made) are dropped silently.

    Raises:
        EmptySelectionError: If nothing is left to export
    """
    nodes = list(canvas.nodes.values())
    if not scope.is_whole_canvas:
        wanted = scope.node_ids or frozenset()
        nodes = [node for node in nodes if node.id in wanted]

    if not nodes:
        requested = None if scope.is_whole_canvas else sorted(scope.node_ids or ())
        raise EmptySelectionError(requested)
    return nodes


def filter_edges(edges: Iterable[CanvasEdge], nodes: Iterable[CanvasNode]) -> list[CanvasEdge]:
    """Edges whose both endpoints are among *nodes*.

    Builds a multigraph keyed by edge id so parallel edges and self
    loops are kept, then takes the node-induced subgraph. The result
    follows the order of *edges*.
    """
    edge_list = list(edges)
    node_ids = {node.id for node in nodes}

    graph = nx.MultiDiGraph()
    graph.add_nodes_from(node_ids)
    for edge in edge_list:
        graph.add_edge(edge.from_id, edge.to_id, key=edge.id)

    kept = {key for _, _, key in graph.subgraph(node_ids).edges(keys=True)}
    return [edge for edge in edge_list if edge.id in kept]
