"""
Tests for the renderer flow graph
"""
import pytest

from sql_visualizer.extractor import QueryExtractor
from sql_visualizer.flow_graph import FILTER_STROKE, PROJECTION_STROKE, FlowGraphBuilder
from sql_visualizer.store import DEFAULT_QUERY


@pytest.fixture
def extractor():
    return QueryExtractor()


@pytest.fixture
def builder():
    return FlowGraphBuilder()


def test_default_query_nodes_in_render_order(builder, extractor):
    builder.build(extractor.parse(DEFAULT_QUERY))
    nodes = builder.to_json()['nodes']

    assert [node['id'] for node in nodes] == [
        'table-users-0', 'table-posts-1', 'table-comments-2',
        'projection-0', 'projection-1', 'projection-2', 'projection-3', 'projection-4',
        'join-1', 'join-2',
        'filter-0', 'filter-1',
    ]
    join = nodes[8]
    assert join['type'] == 'join'
    assert join['position'] == {'x': 450, 'y': 200}
    assert join['data']['type'] == 'join'
    assert join['data']['leftTable'] == 'posts'


def test_default_query_edges(builder, extractor):
    builder.build(extractor.parse(DEFAULT_QUERY))
    edges = builder.to_json()['edges']

    assert [edge['id'] for edge in edges] == [
        'table-posts-1-join-1',
        'table-comments-2-join-2',
        'table-users-0-projection-0',
        'table-users-0-projection-1',
        'table-users-0-projection-2',
        'table-posts-1-projection-3',
        'table-comments-2-projection-4',
    ]
    assert all(edge['type'] == 'smoothstep' for edge in edges)
    assert all(edge['markerEnd'] == {'type': 'arrowclosed'} for edge in edges)
    assert 'style' not in edges[0]
    assert edges[2]['style'] == {'stroke': PROJECTION_STROKE}


def test_filter_edges_follow_table_names_in_condition(builder, extractor):
    builder.build(extractor.parse('SELECT * FROM orders WHERE orders.amount > 100'))
    edges = builder.to_json()['edges']

    assert edges == [{
        'id': 'table-orders-0-filter-0',
        'source': 'table-orders-0',
        'target': 'filter-0',
        'type': 'smoothstep',
        'markerEnd': {'type': 'arrowclosed'},
        'style': {'stroke': FILTER_STROKE},
    }]


def test_empty_graph_without_parsed_query(builder, extractor):
    builder.build(extractor.parse(DEFAULT_QUERY))

    graph = builder.build(None)

    assert graph.number_of_nodes() == 0
    assert builder.to_json() == {'nodes': [], 'edges': []}


def test_neighborhood(builder, extractor):
    builder.build(extractor.parse(DEFAULT_QUERY))

    assert builder.neighborhood('table-users-0') == {
        'id': 'table-users-0',
        'type': 'table',
        'upstream': [],
        'downstream': ['projection-0', 'projection-1', 'projection-2'],
    }
    assert builder.neighborhood('join-1')['upstream'] == ['table-posts-1']
    assert builder.neighborhood('missing') is None


def test_json_is_cached_until_next_build(builder, extractor):
    parsed = extractor.parse(DEFAULT_QUERY)
    builder.build(parsed)
    first = builder.to_json()

    builder.build(parsed)
    assert builder.to_json() is first

    builder.build(extractor.parse('SELECT a FROM t1'))
    assert builder.to_json() is not first
    assert [node['id'] for node in builder.to_json()['nodes']] == ['table-t1-0', 'projection-0']
