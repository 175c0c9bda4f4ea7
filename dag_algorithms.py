"""
dag_algorithms.py: Graph algorithms over plain node/edge collections

Nothing here knows about the object store. Nodes are ids (or records with an
``id`` attribute, such as gitdag.CommitNode) and edges are (source, target)
pairs where the source is the later commit pointing at the earlier target.

Algorithms:
- topological_sort: Kahn's algorithm, newest first.
- calculate_layout: layered (hierarchical) coordinates plus curved edge paths.
- find_shortest_path: BFS with edges treated as undirected.
- detect_cycle: iterative three-colour DFS.
- calculate_graph_metrics: degrees, roots, leaves and longest root-to-leaf depth.
- group_by_branch: commits reachable from each ref.
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field, fields
from typing import Dict, List

logger = logging.getLogger(__name__)

UNVISITED, VISITING, VISITED = 0, 1, 2

def _node_ids(nodes):
    return [getattr(node, "id", node) for node in nodes]

def _adjacency(ids, edges):
    # Only edges leaving a known node are followed.
    graph = {node_id: [] for node_id in ids}
    for source, target in edges:
        if source in graph:
            graph[source].append(target)
    return graph

# ----------------------
# Topological order
# ----------------------

def topological_sort(nodes, edges):
    """
    Kahn's algorithm. Roots (commits without parents) are peeled off first
    and the result is reversed, so every edge's source comes before its
    target: children before parents, newest first.

    Ties are broken by insertion order, not timestamp. Nodes on a cycle
    never reach in-degree 0 and are left out.
    """
    ids = _node_ids(nodes)
    children = {node_id: [] for node_id in ids}
    in_degree = {node_id: 0 for node_id in ids}
    for source, target in edges:
        if source in children and target in children:
            children[target].append(source)
            in_degree[source] += 1

    queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
    order = []
    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for child in children[node_id]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    if len(order) < len(in_degree):
        logger.debug("topological_sort skipped %d node(s) on cycles", len(in_degree) - len(order))
    order.reverse()
    return order

# ----------------------
# Hierarchical layout
# ----------------------

_OPTION_ALIASES = {
    "nodeWidth": "node_width",
    "nodeHeight": "node_height",
    "horizontalGap": "horizontal_gap",
    "verticalGap": "vertical_gap",
}

@dataclass
class LayoutConfig:
    node_width: float = 120
    node_height: float = 60
    horizontal_gap: float = 150
    vertical_gap: float = 100

    @classmethod
    def from_mapping(cls, options):
        """Build from snake_case or camelCase keys; unknown keys are ignored."""
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            key = _OPTION_ALIASES.get(key, key)
            if key in names:
                kwargs[key] = value
        return cls(**kwargs)

@dataclass(frozen=True)
class NodePosition:
    x: float
    y: float
    layer: int

@dataclass(frozen=True)
class EdgePath:
    """Cubic curve from the child's bottom edge to the parent's top edge."""
    source: str
    target: str
    x1: float
    y1: float
    x2: float
    y2: float
    control_x1: float
    control_y1: float
    control_x2: float
    control_y2: float

@dataclass
class Layout:
    nodes: Dict[str, NodePosition] = field(default_factory=dict)
    edges: List[EdgePath] = field(default_factory=list)

def calculate_layout(nodes, edges, config=None):
    """
    Assign (x, y) to every node and a curve to every edge.

    Layer = index in topological_sort order, so children sit at lower
    layers than their parents. Nodes in one layer are spaced evenly around
    x = 0.
    """
    if config is None:
        config = LayoutConfig()
    elif not isinstance(config, LayoutConfig):
        config = LayoutConfig.from_mapping(config)

    layout = Layout()
    if not nodes:
        return layout

    # Every topological index is its own layer, so each layer holds exactly
    # one node at x = 0 and node_width/horizontal_gap never shift anything.
    # Same as the original layout; the per-layer centring below is kept for
    # layerings that share layers.
    layers = {node_id: index for index, node_id in enumerate(topological_sort(nodes, edges))}
    layer_sizes = defaultdict(int)
    for layer in layers.values():
        layer_sizes[layer] += 1

    next_slot = defaultdict(int)
    for node_id, layer in layers.items():
        slot = next_slot[layer]
        next_slot[layer] += 1
        size = layer_sizes[layer]
        total_width = size * config.node_width + (size - 1) * config.horizontal_gap
        layout.nodes[node_id] = NodePosition(
            x=-total_width / 2 + slot * (config.node_width + config.horizontal_gap) + config.node_width / 2,
            y=layer * config.vertical_gap + config.node_height / 2,
            layer=layer,
        )

    half_height = config.node_height / 2
    for source, target in edges:
        start, end = layout.nodes.get(source), layout.nodes.get(target)
        if start is None or end is None:
            logger.debug("layout dropped edge %s -> %s: unknown endpoint", source, target)
            continue
        mid_y = start.y + (end.y - start.y) / 2
        layout.edges.append(EdgePath(
            source=source,
            target=target,
            x1=start.x,
            y1=start.y + half_height,
            x2=end.x,
            y2=end.y - half_height,
            control_x1=start.x,
            control_y1=mid_y,
            control_x2=end.x,
            control_y2=mid_y,
        ))
    return layout

# ----------------------
# Search
# ----------------------

def find_shortest_path(start, end, edges):
    """BFS over edges taken as undirected. Returns the id list or None."""
    if start == end:
        return [start]

    graph = defaultdict(list)
    for source, target in edges:
        graph[source].append(target)
        graph[target].append(source)

    queue = deque([[start]])
    visited = {start}
    while queue:
        path = queue.popleft()
        node_id = path[-1]
        if node_id == end:
            return path
        for neighbor in graph[node_id]:
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(path + [neighbor])
    return None

def detect_cycle(nodes, edges):
    ids = _node_ids(nodes)
    graph = _adjacency(ids, edges)
    state = {}

    for root in ids:
        if state.get(root, UNVISITED) != UNVISITED:
            continue
        state[root] = VISITING
        stack = [(root, iter(graph[root]))]
        while stack:
            node_id, neighbors = stack[-1]
            for neighbor in neighbors:
                neighbor_state = state.get(neighbor, UNVISITED)
                if neighbor_state == VISITING:
                    return True
                if neighbor_state == UNVISITED:
                    state[neighbor] = VISITING
                    stack.append((neighbor, iter(graph.get(neighbor, ()))))
                    break
            else:
                state[node_id] = VISITED
                stack.pop()
    return False

# ----------------------
# Metrics
# ----------------------

@dataclass
class GraphMetrics:
    node_count: int
    edge_count: int
    root_count: int
    leaf_count: int
    max_depth: int
    avg_in_degree: float
    avg_out_degree: float
    in_degree: Dict[str, int] = field(default_factory=dict)
    out_degree: Dict[str, int] = field(default_factory=dict)
    roots: List[str] = field(default_factory=list)
    leaves: List[str] = field(default_factory=list)

def calculate_graph_metrics(nodes, edges):
    ids = _node_ids(nodes)
    edges = list(edges)
    graph = _adjacency(ids, edges)

    in_degree = {node_id: 0 for node_id in ids}
    out_degree = {node_id: 0 for node_id in ids}
    for source, target in edges:
        out_degree[source] = out_degree.get(source, 0) + 1
        in_degree[target] = in_degree.get(target, 0) + 1

    roots = [node_id for node_id in ids if in_degree[node_id] == 0]
    leaves = [node_id for node_id in ids if out_degree[node_id] == 0]

    # Not memoised: shared suffixes are walked once per path reaching them.
    # A walk longer than the node count can only be going round a cycle.
    max_depth = 0
    for root in roots:
        stack = [(root, 0)]
        while stack:
            node_id, depth = stack.pop()
            max_depth = max(max_depth, depth)
            if depth < len(ids):
                stack.extend((neighbor, depth + 1) for neighbor in graph.get(node_id, ()))

    average = len(edges) / len(ids) if ids else 0
    return GraphMetrics(
        node_count=len(ids),
        edge_count=len(edges),
        root_count=len(roots),
        leaf_count=len(leaves),
        max_depth=max_depth,
        avg_in_degree=average,
        avg_out_degree=average,
        in_degree=in_degree,
        out_degree=out_degree,
        roots=roots,
        leaves=leaves,
    )

def group_by_branch(edges, branches):
    """
    Map each ref name to every id reachable from its commit. A commit shared
    by two branches appears in both sets.
    """
    graph = defaultdict(list)
    for source, target in edges:
        graph[source].append(target)

    groups = {}
    for name, head in branches.items():
        members = set()
        stack = [head]
        while stack:
            node_id = stack.pop()
            if node_id in members:
                continue
            members.add(node_id)
            stack.extend(graph[node_id])
        groups[name] = members
    return groups
