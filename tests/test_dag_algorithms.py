"""Graph algorithms on plain node/edge lists, cross-checked with networkx."""

import networkx as nx
import pytest

from dag_algorithms import (
    LayoutConfig,
    calculate_graph_metrics,
    calculate_layout,
    detect_cycle,
    find_shortest_path,
    group_by_branch,
    topological_sort,
)


def _nodes(edges, *extra):
    seen = []
    for edge in edges:
        for node_id in edge:
            if node_id not in seen:
                seen.append(node_id)
    return seen + list(extra)


def test_topological_sort_chain_is_newest_first(chain_edges):
    assert topological_sort(["A", "B", "C"], chain_edges) == ["A", "B", "C"]
    assert topological_sort(["C", "B", "A"], chain_edges) == ["A", "B", "C"]


def test_topological_sort_children_before_parents(diamond_edges):
    order = topological_sort(_nodes(diamond_edges), diamond_edges)
    index = {node_id: i for i, node_id in enumerate(order)}

    assert sorted(order) == ["A", "B", "M", "R"]
    for source, target in diamond_edges:
        assert index[source] < index[target]


def test_topological_sort_keeps_isolated_nodes(chain_edges):
    order = topological_sort(["A", "B", "C", "D"], chain_edges)

    assert set(order) == {"A", "B", "C", "D"}


def test_topological_sort_ignores_unknown_endpoints():
    assert topological_sort(["A"], [("A", "Z")]) == ["A"]


def test_topological_sort_on_snapshot(sample_repo):
    graph = sample_repo.commit_graph()
    order = topological_sort(graph.nodes, graph.edges)
    index = {node_id: i for i, node_id in enumerate(order)}

    assert len(order) == len(graph.nodes)
    for source, target in graph.edges:
        assert index[source] < index[target]


def test_layout_chain_coordinates(chain_edges):
    layout = calculate_layout(["A", "B", "C"], chain_edges)

    assert [layout.nodes[n].layer for n in "ABC"] == [0, 1, 2]
    assert [layout.nodes[n].y for n in "ABC"] == [30, 130, 230]
    assert all(layout.nodes[n].x == 0 for n in "ABC")

    path = layout.edges[0]
    assert (path.source, path.target) == ("A", "B")
    assert (path.y1, path.y2) == (60, 100)
    assert path.control_y1 == path.control_y2 == 80
    assert (path.control_x1, path.control_x2) == (path.x1, path.x2)


def test_layout_parents_below_children(diamond_edges):
    layout = calculate_layout(_nodes(diamond_edges), diamond_edges)

    for source, target in diamond_edges:
        assert layout.nodes[source].layer < layout.nodes[target].layer
        assert layout.nodes[source].y < layout.nodes[target].y


def test_layout_config_overrides(chain_edges):
    config = LayoutConfig(node_width=40, node_height=20, horizontal_gap=10, vertical_gap=50)
    layout = calculate_layout(["A", "B", "C"], chain_edges, config)

    assert layout.nodes["B"].y == 50 + 10
    assert layout.nodes["C"].y == 100 + 10


def test_layout_one_node_per_layer_ignores_horizontal_spacing(diamond_edges):
    nodes = _nodes(diamond_edges)
    wide = LayoutConfig(node_width=500, horizontal_gap=400)

    default_layout = calculate_layout(nodes, diamond_edges)
    wide_layout = calculate_layout(nodes, diamond_edges, wide)

    layers = [pos.layer for pos in wide_layout.nodes.values()]
    assert sorted(layers) == list(range(len(nodes)))
    assert all(pos.x == 0 for pos in wide_layout.nodes.values())
    assert wide_layout.nodes == default_layout.nodes


def test_layout_accepts_camel_case_options(chain_edges):
    layout = calculate_layout(["A", "B", "C"], chain_edges, {"nodeHeight": 10, "verticalGap": 20, "unknown": 1})

    assert layout.nodes["C"].y == 45


def test_layout_config_from_mapping():
    config = LayoutConfig.from_mapping({"nodeWidth": 10, "horizontal_gap": 5, "bogus": True})

    assert config == LayoutConfig(node_width=10, horizontal_gap=5)


def test_layout_empty_and_dangling_edges():
    assert calculate_layout([], []).nodes == {}

    layout = calculate_layout(["A"], [("A", "missing")])
    assert list(layout.nodes) == ["A"]
    assert layout.edges == []


def test_layout_snapshot_has_one_path_per_edge(sample_repo):
    graph = sample_repo.commit_graph()
    layout = calculate_layout(graph.nodes, graph.edges)

    assert set(layout.nodes) == set(graph.node_ids())
    assert len(layout.edges) == len(graph.edges)


def test_shortest_path_chain(chain_edges):
    assert find_shortest_path("A", "C", chain_edges) == ["A", "B", "C"]
    assert find_shortest_path("C", "A", chain_edges) == ["C", "B", "A"]
    assert find_shortest_path("A", "A", chain_edges) == ["A"]
    assert find_shortest_path("A", "D", chain_edges) is None


def test_shortest_path_matches_networkx(sample_repo):
    graph = sample_repo.commit_graph()
    undirected = nx.Graph(graph.edge_pairs())

    for start in graph.node_ids():
        for end in graph.node_ids():
            path = find_shortest_path(start, end, graph.edges)
            assert len(path) - 1 == nx.shortest_path_length(undirected, start, end)
            assert path[0] == start and path[-1] == end


def test_detect_cycle_on_dags(diamond_edges, sample_repo):
    graph = sample_repo.commit_graph()

    assert detect_cycle(_nodes(diamond_edges), diamond_edges) is False
    assert detect_cycle(graph.nodes, graph.edges) is False
    assert nx.is_directed_acyclic_graph(nx.DiGraph(graph.edge_pairs()))


@pytest.mark.parametrize("edges", [
    [("A", "B"), ("B", "C"), ("C", "A")],
    [("A", "A")],
    [("A", "B"), ("B", "A")],
])
def test_detect_cycle_finds_cycles(edges):
    assert detect_cycle(_nodes(edges), edges) is True
    assert not nx.is_directed_acyclic_graph(nx.DiGraph(edges))


def test_detect_cycle_checks_every_component():
    edges = [("X", "Y"), ("A", "B"), ("B", "A")]

    assert detect_cycle(["X", "Y", "A", "B"], edges) is True


def test_metrics_on_snapshot(sample_repo):
    graph = sample_repo.commit_graph()
    c4, c2, c1, c3 = graph.node_ids()

    metrics = calculate_graph_metrics(graph.nodes, graph.edges)

    assert metrics.node_count == 4
    assert metrics.edge_count == 3
    assert metrics.roots == [c4, c3]
    assert metrics.leaves == [c1]
    assert (metrics.root_count, metrics.leaf_count) == (2, 1)
    assert metrics.in_degree[c2] == 2
    assert metrics.out_degree[c1] == 0
    assert metrics.avg_in_degree == metrics.avg_out_degree == 0.75
    assert metrics.max_depth == nx.dag_longest_path_length(nx.DiGraph(graph.edge_pairs())) == 2


def test_metrics_diamond_depth(diamond_edges):
    metrics = calculate_graph_metrics(_nodes(diamond_edges), diamond_edges)

    assert metrics.roots == ["M"]
    assert metrics.leaves == ["R"]
    assert metrics.max_depth == 2


def test_metrics_empty_graph():
    metrics = calculate_graph_metrics([], [])

    assert metrics.node_count == 0
    assert metrics.max_depth == 0
    assert metrics.avg_in_degree == 0


def test_metrics_terminates_on_cycle_reachable_from_root():
    edges = [("R", "A"), ("A", "B"), ("B", "A")]

    metrics = calculate_graph_metrics(["R", "A", "B"], edges)

    assert metrics.roots == ["R"]
    assert metrics.max_depth == 3


def test_group_by_branch(sample_repo):
    graph = sample_repo.commit_graph()
    c4, c2, c1, c3 = graph.node_ids()

    groups = group_by_branch(graph.edges, graph.refs)

    assert groups == {"main": {c4, c2, c1}, "feature-branch": {c3, c2, c1}}


def test_group_by_branch_includes_unknown_head():
    assert group_by_branch([], {"lonely": "X"}) == {"lonely": {"X"}}
