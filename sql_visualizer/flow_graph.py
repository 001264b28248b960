"""
Flow Graph Builder using NetworkX
Lays a parsed query out as renderer nodes (tables, projections, joins, filters) and edges
"""
from typing import Any, Dict, List, Optional

import networkx as nx

from sql_visualizer.models import ParsedQuery, Table

EDGE_TYPE = 'smoothstep'
ARROW_MARKER = {'type': 'arrowclosed'}
FILTER_STROKE = '#f59e0b'
PROJECTION_STROKE = '#6366f1'


class FlowGraphBuilder:
    """Builds the directed node/edge graph the diagram renderer draws"""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._source: Optional[ParsedQuery] = None
        self._json_cache = None  # Cache for JSON output

    def build(self, parsed_query: Optional[ParsedQuery]) -> nx.DiGraph:
        """
        Rebuild the graph for a parsed query

        Returns:
            The graph; empty when there is no parsed query
        """
        if self._source is not None and parsed_query is self._source:
            return self.graph

        self.clear()
        self._source = parsed_query
        if parsed_query is None:
            return self.graph

        for table in parsed_query.tables:
            self._add_node(table.id, 'table', table)
        for projection in parsed_query.projections:
            self._add_node(projection.id, 'projection', projection)

        for join in parsed_query.joins:
            self._add_node(join.id, 'join', join)
            for side in (join.left_table, join.right_table):
                table = self._first_table(parsed_query, lambda t: t.name == side)
                if table:
                    self._add_edge(table.id, join.id)

        for flt in parsed_query.filters:
            self._add_node(flt.id, 'filter', flt)
            # a table feeds a filter whenever its name shows up in the condition text
            for table in parsed_query.tables:
                if table.name in flt.condition:
                    self._add_edge(table.id, flt.id, stroke=FILTER_STROKE)

        for projection in parsed_query.projections:
            if not projection.table:
                continue
            table = self._first_table(
                parsed_query,
                lambda t: t.name == projection.table or t.alias == projection.table,
            )
            if table:
                self._add_edge(table.id, projection.id, stroke=PROJECTION_STROKE)

        return self.graph

    @staticmethod
    def _first_table(parsed_query: ParsedQuery, predicate) -> Optional[Table]:
        return next((table for table in parsed_query.tables if predicate(table)), None)

    def _add_node(self, node_id: str, node_type: str, model):
        data = model.to_json()
        data['type'] = node_type
        self.graph.add_node(
            node_id,
            type=node_type,
            position=data['position'],
            data=data,
        )

    def _add_edge(self, source: str, target: str, stroke: Optional[str] = None):
        # edge ids are source-target, so a repeated pair collapses into one edge
        if self.graph.has_edge(source, target):
            return
        self.graph.add_edge(
            source,
            target,
            id='{}-{}'.format(source, target),
            stroke=stroke,
            order=self.graph.number_of_edges(),
        )

    def clear(self):
        """Clear the entire graph"""
        self.graph.clear()
        self._source = None
        self._json_cache = None

    def neighborhood(self, node_id: str) -> Optional[Dict[str, Any]]:
        """
        Nodes directly connected to `node_id`, for highlighting a selection

        Returns:
            Dict with the node and its upstream/downstream ids, or None for an unknown id
        """
        if not self.graph.has_node(node_id):
            return None
        return {
            'id': node_id,
            'type': self.graph.nodes[node_id]['type'],
            'upstream': list(self.graph.predecessors(node_id)),
            'downstream': list(self.graph.successors(node_id)),
        }

    def to_json(self) -> Dict[str, List[Dict[str, Any]]]:
        """Convert graph to the renderer's node/edge format (with caching)"""
        if self._json_cache is not None:
            return self._json_cache

        nodes = [
            {
                'id': node_id,
                'type': attrs['type'],
                'position': attrs['position'],
                'data': attrs['data'],
            }
            for node_id, attrs in self.graph.nodes(data=True)
        ]

        edges = []
        ordered = sorted(self.graph.edges(data=True), key=lambda edge: edge[2]['order'])
        for source, target, attrs in ordered:
            edge = {
                'id': attrs['id'],
                'source': source,
                'target': target,
                'type': EDGE_TYPE,
                'markerEnd': dict(ARROW_MARKER),
            }
            if attrs['stroke']:
                edge['style'] = {'stroke': attrs['stroke']}
            edges.append(edge)

        self._json_cache = {'nodes': nodes, 'edges': edges}
        return self._json_cache
