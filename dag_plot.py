# dag_plot.py
"""Graphviz export of a commit graph snapshot (and optionally its trees)."""

import logging

from graphviz import Digraph

import dag_algorithms
from gitdag import SHORT_SHA_LENGTH, GitTree

logger = logging.getLogger(__name__)

def commit_graph_dot(graph, layout=None, include_refs=True):
    """
    Build a Digraph from a gitdag.CommitGraph. With a layout, node positions
    are pinned and the neato engine is used so Graphviz keeps them.
    """
    dot = Digraph("commits", engine="neato" if layout else "dot")
    dot.attr("node", fontname="Helvetica")

    def pos(node_id):
        # Graphviz y grows upwards, layout y grows downwards.
        if layout is None or node_id not in layout.nodes:
            return {}
        p = layout.nodes[node_id]
        return {"pos": f"{p.x:g},{-p.y:g}!"}

    for node in graph.nodes:
        dot.node(node.id, f"{node.short_id}\n{node.summary}", shape="box", style="filled", **pos(node.id))
    for source, target in graph.edges:
        dot.edge(source, target)

    if include_refs:
        for name, sha in graph.refs.items():
            dot.node(f"ref {name}", name, shape="note")
            dot.edge(f"ref {name}", sha)
        if graph.current_ref in graph.refs:
            dot.node("HEAD", "HEAD", shape="note")
            dot.edge("HEAD", f"ref {graph.current_ref}")
    return dot

def tree_dot(repo, tree_sha, dot=None, seen=None):
    if dot is None:
        dot = Digraph("tree")
    if seen is None:
        seen = set()
    if tree_sha in seen:
        return dot
    seen.add(tree_sha)

    dot.node(tree_sha, f"tree\n{tree_sha[:SHORT_SHA_LENGTH]}", shape="oval")
    tree = repo.get_object(tree_sha, GitTree.fmt)
    if tree is None:
        logger.debug("tree %s not in store", tree_sha)
        return dot
    for entry in tree.entries:
        if entry.kind == GitTree.fmt:
            tree_dot(repo, entry.sha, dot, seen)
        else:
            dot.node(entry.sha, f"{entry.name}\n{entry.sha[:SHORT_SHA_LENGTH]}", shape="box")
        dot.edge(tree_sha, entry.sha, label=entry.name)
    return dot

def plot_commit_graph(repo, output_path="commit_graph", fmt="png", include_trees=False, config=None):
    graph = repo.commit_graph()
    layout = dag_algorithms.calculate_layout(graph.nodes, graph.edges, config)
    dot = commit_graph_dot(graph, layout)
    if include_trees:
        seen = set()
        for node in graph.nodes:
            commit = repo.get_object(node.id)
            dot.edge(node.id, commit.tree, label="tree")
            tree_dot(repo, commit.tree, dot, seen)
    return dot.render(output_path, format=fmt, cleanup=True)

if __name__ == '__main__':
    import argparse

    from gitdag import create_sample_repository

    p = argparse.ArgumentParser()
    p.add_argument('--out', default='commit_graph', help='output name')
    p.add_argument('--trees', action='store_true', help='include tree and blob nodes')
    args = p.parse_args()
    print(plot_commit_graph(create_sample_repository(), args.out, include_trees=args.trees))
