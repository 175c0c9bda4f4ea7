"""
gitdag.py: In-memory git-style object store and commit DAG

Commands: log, stats, branches, show, merge-base, topo, layout, path, metrics, cycles, dot

Data Structures:
- GitObject: Base class for stored objects (Blob, Tree, Commit).
- GitBlob: Represents file contents.
- GitTree: Ordered list of named pointers (TreeEntry) to blobs or subtrees.
- GitCommit: Snapshot pointing at a tree and zero or more parent commits.
- ObjectStore: Dict mapping fingerprint -> object (content-addressable storage).
- Repository: Owns an ObjectStore, the ref table (branch -> commit) and HEAD.
- CommitGraph / RepositoryStats / CommitDetails: result records handed to the presentation layer.

Objects and refs live in memory only; there is no on-disk format.
"""

import argparse
import hashlib
import json
import logging
import sys
from collections import namedtuple
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import dag_algorithms

logger = logging.getLogger(__name__)

SHORT_SHA_LENGTH = 7
DEFAULT_MODE = "100644"

# ----------------------
# Fingerprinting
# ----------------------

def _stringify_keys(value):
    if isinstance(value, dict):
        return {str(key): _stringify_keys(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify_keys(item) for item in value]
    return value

def canonical_bytes(value):
    """
    Bytes pass through; everything else, str included, is JSON-encoded so
    values of different types never share a canonical form. The ASCII-only
    JSON output always encodes, lone surrogates included.
    """
    if isinstance(value, bytes):
        return value
    try:
        text = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    except TypeError:
        # Keys of mixed types can't be sorted against each other.
        text = json.dumps(_stringify_keys(value), sort_keys=True, separators=(",", ":"), default=str)
    return text.encode()

def fingerprint(value, fmt=None):
    """
    Deterministic 40-char hex id for a value. With fmt, a git-style
    "<fmt> <len>\\0" header is hashed in front of the content.
    """
    data = canonical_bytes(value)
    if fmt:
        data = f"{fmt} {len(data)}".encode() + b'\x00' + data
    return hashlib.sha1(data).hexdigest()

# ----------------------
# Object Model
# ----------------------

class GitObject:
    fmt = None

    def serialize(self):
        raise NotImplementedError

    def _rehash(self):
        self.sha = fingerprint(self.serialize(), self.fmt)

    def __repr__(self):
        return f"<{type(self).__name__} {self.sha[:SHORT_SHA_LENGTH]}>"

class GitBlob(GitObject):
    fmt = "blob"

    def __init__(self, data):
        self.data = data
        self._rehash()

    def serialize(self):
        return canonical_bytes(self.data)

TreeEntry = namedtuple("TreeEntry", ["mode", "name", "sha", "kind"])

class GitTree(GitObject):
    # Appending is the only mutation; every append produces a new fingerprint.
    fmt = "tree"

    def __init__(self, entries=()):
        self.entries = [TreeEntry(*entry) for entry in entries]
        self._rehash()

    def add_entry(self, mode, name, sha, kind="blob"):
        self.entries.append(TreeEntry(mode, name, sha, kind))
        self._rehash()
        return self.sha

    def serialize(self):
        return "".join(
            f"{e.mode} {e.kind} {e.sha}\t{e.name}\n" for e in self.entries
        ).encode("utf-8", "surrogatepass")

class GitCommit(GitObject):
    fmt = "commit"

    def __init__(self, tree, parents=(), author="", message="", timestamp=None):
        self.tree = tree
        self.parents = tuple(parents)
        self.author = author
        self.message = message
        self.timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        self._rehash()

    @property
    def short_sha(self):
        return self.sha[:SHORT_SHA_LENGTH]

    @property
    def summary(self):
        return self.message.splitlines()[0] if self.message else ""

    def serialize(self):
        lines = [f"tree {self.tree}"]
        lines.extend(f"parent {parent}" for parent in self.parents)
        lines.append(f"author {self.author}")
        lines.append(f"date {self.timestamp}")
        lines.append("")
        lines.append(self.message)
        return "\n".join(lines).encode("utf-8", "surrogatepass")

# ----------------------
# Object Store
# ----------------------

class ObjectStore:
    """
    Content-addressable storage: fingerprint -> object.

    Objects are never removed. Storing equal content twice is a no-op
    replace under the same key.
    """

    def __init__(self):
        self._objects = {}

    def put(self, obj):
        self._objects[obj.sha] = obj
        logger.debug("stored %s %s", obj.fmt, obj.sha)
        return obj.sha

    def get(self, sha, fmt=None):
        obj = self._objects.get(sha)
        if obj is None or (fmt is not None and obj.fmt != fmt):
            return None
        return obj

    def count_by_type(self):
        counts = {GitBlob.fmt: 0, GitTree.fmt: 0, GitCommit.fmt: 0}
        for obj in self._objects.values():
            counts[obj.fmt] = counts.get(obj.fmt, 0) + 1
        return counts

    def __contains__(self, sha):
        return sha in self._objects

    def __len__(self):
        return len(self._objects)

    def __iter__(self):
        return iter(self._objects)

# ----------------------
# Result records
# ----------------------

@dataclass(frozen=True)
class CommitNode:
    id: str
    short_id: str
    message: str
    author: str
    timestamp: str
    parents: Tuple[str, ...]

    @property
    def summary(self):
        return self.message.splitlines()[0] if self.message else ""

# Directed child -> parent edge; unpacks as a (from, to) pair.
GraphEdge = namedtuple("GraphEdge", ["source", "target"])

@dataclass
class CommitGraph:
    nodes: List[CommitNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    refs: Dict[str, str] = field(default_factory=dict)
    current_ref: str = ""

    def node_ids(self):
        return [node.id for node in self.nodes]

    def edge_pairs(self):
        return [tuple(edge) for edge in self.edges]

@dataclass(frozen=True)
class RepositoryStats:
    total_objects: int
    total_commits: int
    total_trees: int
    total_blobs: int
    branch_count: int
    current_ref: str

@dataclass
class CommitDetails:
    commit: GitCommit
    tree_entries: List[TreeEntry]
    parents: List[Optional[GitCommit]]

# ----------------------
# Repository
# ----------------------

class Repository:
    """
    Owns one ObjectStore, the ref table (branch name -> commit sha) and
    the current reference name (HEAD).

    HEAD may name a branch that has no entry yet (empty repository).
    Lookups that find nothing return None/False/[]; nothing here raises
    for a missing object or ref.
    """

    def __init__(self, default_branch="main"):
        self.objects = ObjectStore()
        self.refs = {}
        self.head = default_branch

    def store_object(self, obj):
        return self.objects.put(obj)

    def get_object(self, sha, fmt=None):
        return self.objects.get(sha, fmt)

    def head_commit(self):
        return self.refs.get(self.head)

    def commit(self, tree_sha, message, author, timestamp=None):
        parent = self.head_commit()
        commit = GitCommit(tree_sha, [parent] if parent else [], author, message, timestamp)
        self.store_object(commit)
        self.refs[self.head] = commit.sha
        logger.debug("%s -> %s (%s)", self.head, commit.short_sha, commit.summary)
        return commit

    def commit_files(self, files, message, author, timestamp=None):
        tree = GitTree()
        for name, content in files.items():
            tree.add_entry(DEFAULT_MODE, name, self.store_object(GitBlob(content)), GitBlob.fmt)
        self.store_object(tree)
        return self.commit(tree.sha, message, author, timestamp)

    def create_branch(self, name, sha=None):
        sha = sha or self.head_commit()
        if not sha:
            logger.info("not creating branch %s: %s has no commits", name, self.head)
            return False
        if self.get_object(sha, GitCommit.fmt) is None:
            logger.info("not creating branch %s: %s is not a commit", name, sha)
            return False
        self.refs[name] = sha
        logger.debug("branch %s -> %s", name, sha[:SHORT_SHA_LENGTH])
        return True

    def checkout(self, name):
        if name not in self.refs:
            logger.info("cannot checkout %s: no such branch", name)
            return False
        self.head = name
        logger.debug("HEAD -> %s", name)
        return True

    def iter_commits_and_parents(self, sha):
        """
        Depth-first pre-order walk over commit shas. A commit is yielded on
        first visit, then its parents are walked in the order listed.
        """
        stack = [sha]
        visited = set()
        while stack:
            sha = stack.pop()
            if not sha or sha in visited:
                continue
            visited.add(sha)
            commit = self.get_object(sha, GitCommit.fmt)
            if commit is None:
                continue
            yield sha
            stack.extend(reversed(commit.parents))

    def history(self, start=None):
        start = start or self.head_commit()
        if not start:
            return []
        return [self.get_object(sha) for sha in self.iter_commits_and_parents(start)]

    def merge_base(self, branch_a, branch_b):
        """
        First commit on branch_b's walk that is also an ancestor of
        branch_a. This is a common ancestor, not necessarily the lowest one
        when there are several merge points.
        """
        sha_a = self.refs.get(branch_a)
        sha_b = self.refs.get(branch_b)
        if not sha_a or not sha_b:
            logger.info("no merge base for %s and %s: missing ref", branch_a, branch_b)
            return None
        ancestors = set(self.iter_commits_and_parents(sha_a))
        for sha in self.iter_commits_and_parents(sha_b):
            if sha in ancestors:
                return sha
        return None

    def is_ancestor(self, ancestor, sha):
        return ancestor in self.iter_commits_and_parents(sha)

    def commit_graph(self):
        graph = CommitGraph(refs=dict(self.refs), current_ref=self.head)
        seen = set()
        for tip in self.refs.values():
            for sha in self.iter_commits_and_parents(tip):
                if sha in seen:
                    continue
                seen.add(sha)
                commit = self.get_object(sha)
                graph.nodes.append(CommitNode(
                    id=commit.sha,
                    short_id=commit.short_sha,
                    message=commit.message,
                    author=commit.author,
                    timestamp=commit.timestamp,
                    parents=commit.parents,
                ))
                graph.edges.extend(GraphEdge(commit.sha, parent) for parent in commit.parents)
        return graph

    def stats(self):
        counts = self.objects.count_by_type()
        return RepositoryStats(
            total_objects=len(self.objects),
            total_commits=counts[GitCommit.fmt],
            total_trees=counts[GitTree.fmt],
            total_blobs=counts[GitBlob.fmt],
            branch_count=len(self.refs),
            current_ref=self.head,
        )

    def commit_details(self, sha):
        commit = self.get_object(sha, GitCommit.fmt)
        if commit is None:
            return None
        tree = self.get_object(commit.tree, GitTree.fmt)
        return CommitDetails(
            commit=commit,
            tree_entries=list(tree.entries) if tree else [],
            parents=[self.get_object(parent, GitCommit.fmt) for parent in commit.parents],
        )

    def resolve(self, name):
        """Branch name, full sha or unique sha prefix -> commit sha."""
        if name in self.refs:
            return self.refs[name]
        if name == "HEAD":
            return self.head_commit()
        matches = [sha for sha in self.objects
                   if sha.startswith(name) and self.get_object(sha, GitCommit.fmt)]
        return matches[0] if len(matches) == 1 else None

def create_sample_repository():
    """Four commits: main (3 commits) and feature-branch forked at the second."""
    repo = Repository()

    readme = GitBlob("# My Project\nThis is a sample project.")
    main_js = GitBlob('console.log("Hello, World!");')
    package_json = GitBlob('{"name": "sample", "version": "1.0.0"}')
    for blob in (readme, main_js, package_json):
        repo.store_object(blob)

    tree1 = GitTree()
    tree1.add_entry(DEFAULT_MODE, "README.md", readme.sha)
    tree1.add_entry(DEFAULT_MODE, "index.js", main_js.sha)
    repo.store_object(tree1)
    repo.commit(tree1.sha, "Initial commit", "Alice <alice@example.com>")

    updated_readme = GitBlob("# My Project\nThis is a sample project.\n\n## Features\n- Feature 1")
    repo.store_object(updated_readme)
    tree2 = GitTree([
        (DEFAULT_MODE, "README.md", updated_readme.sha, "blob"),
        (DEFAULT_MODE, "index.js", main_js.sha, "blob"),
        (DEFAULT_MODE, "package.json", package_json.sha, "blob"),
    ])
    repo.store_object(tree2)
    repo.commit(tree2.sha, "Add package.json and update README", "Bob <bob@example.com>")

    repo.create_branch("feature-branch")
    repo.checkout("feature-branch")

    feature_js = GitBlob('export function newFeature() { return "cool"; }')
    repo.store_object(feature_js)
    tree3 = GitTree(tree2.entries)
    tree3.add_entry(DEFAULT_MODE, "feature.js", feature_js.sha)
    repo.store_object(tree3)
    repo.commit(tree3.sha, "Add new feature", "Alice <alice@example.com>")

    repo.checkout("main")

    test_js = GitBlob('describe("tests", () => { it("works", () => {}); });')
    repo.store_object(test_js)
    tree4 = GitTree(tree2.entries)
    tree4.add_entry(DEFAULT_MODE, "test.js", test_js.sha)
    repo.store_object(tree4)
    repo.commit(tree4.sha, "Add tests", "Bob <bob@example.com>")

    return repo

# ----------------------
# Commands
# ----------------------

def _resolve_or_exit(repo, name):
    sha = repo.resolve(name)
    if sha is None:
        print(f"Unknown ref or commit: {name}")
        sys.exit(1)
    return sha

def cmd_log(repo, args):
    start = _resolve_or_exit(repo, args.ref) if args.ref else None
    labels = {}
    for name, sha in repo.refs.items():
        labels.setdefault(sha, []).append(name)
    commits = repo.history(start)
    if not commits:
        print("No commits found.")
        return
    for commit in commits:
        refs_str = f" ({', '.join(labels[commit.sha])})" if commit.sha in labels else ""
        print(f"commit {commit.sha}{refs_str}")
        print(f"Author: {commit.author}")
        print(f"Date:   {commit.timestamp}")
        print(f"\n    {commit.message}\n")

def cmd_stats(repo, args):
    stats = repo.stats()
    print(f"Objects:  {stats.total_objects}")
    print(f"Commits:  {stats.total_commits}")
    print(f"Trees:    {stats.total_trees}")
    print(f"Blobs:    {stats.total_blobs}")
    print(f"Branches: {stats.branch_count}")
    print(f"HEAD:     {stats.current_ref}")

def cmd_branches(repo, args):
    for name, sha in repo.refs.items():
        prefix = "*" if name == repo.head else " "
        print(f"{prefix} {name} {sha[:SHORT_SHA_LENGTH]}")

def cmd_show(repo, args):
    details = repo.commit_details(_resolve_or_exit(repo, args.sha))
    commit = details.commit
    print(f"commit {commit.sha}")
    print(f"tree   {commit.tree}")
    for parent_sha, parent in zip(commit.parents, details.parents):
        print(f"parent {parent_sha} {parent.summary if parent else '(missing)'}")
    print(f"Author: {commit.author}")
    print(f"\n    {commit.message}\n")
    for entry in details.tree_entries:
        print(f"{entry.mode} {entry.kind} {entry.sha[:SHORT_SHA_LENGTH]}\t{entry.name}")

def cmd_merge_base(repo, args):
    sha = repo.merge_base(args.branch_a, args.branch_b)
    if sha is None:
        print(f"No common ancestor for {args.branch_a} and {args.branch_b}.")
        sys.exit(1)
    print(f"{sha} {repo.get_object(sha).summary}")

def cmd_topo(repo, args):
    graph = repo.commit_graph()
    by_id = {node.id: node for node in graph.nodes}
    for sha in dag_algorithms.topological_sort(graph.nodes, graph.edges):
        print(f"{by_id[sha].short_id} {by_id[sha].summary}")

def cmd_layout(repo, args):
    graph = repo.commit_graph()
    layout = dag_algorithms.calculate_layout(graph.nodes, graph.edges, _layout_config(args))
    for sha, pos in layout.nodes.items():
        print(f"{sha[:SHORT_SHA_LENGTH]} layer={pos.layer} x={pos.x:g} y={pos.y:g}")

def cmd_path(repo, args):
    start = _resolve_or_exit(repo, args.start)
    end = _resolve_or_exit(repo, args.end)
    path = dag_algorithms.find_shortest_path(start, end, repo.commit_graph().edges)
    if path is None:
        print("No path found.")
        sys.exit(1)
    print(" -> ".join(sha[:SHORT_SHA_LENGTH] for sha in path))

def cmd_metrics(repo, args):
    graph = repo.commit_graph()
    metrics = dag_algorithms.calculate_graph_metrics(graph.nodes, graph.edges)
    print(f"Nodes:          {metrics.node_count}")
    print(f"Edges:          {metrics.edge_count}")
    print(f"Roots:          {metrics.root_count}")
    print(f"Leaves:         {metrics.leaf_count}")
    print(f"Max depth:      {metrics.max_depth}")
    print(f"Avg in-degree:  {metrics.avg_in_degree:.2f}")
    print(f"Avg out-degree: {metrics.avg_out_degree:.2f}")
    for name, members in dag_algorithms.group_by_branch(graph.edges, graph.refs).items():
        print(f"{name}: {len(members)} commits")

def cmd_cycles(repo, args):
    graph = repo.commit_graph()
    if dag_algorithms.detect_cycle(graph.nodes, graph.edges):
        print("Cycle detected.")
        sys.exit(1)
    print("No cycles.")

def cmd_dot(repo, args):
    import dag_plot

    graph = repo.commit_graph()
    layout = dag_algorithms.calculate_layout(graph.nodes, graph.edges, _layout_config(args))
    dot = dag_plot.commit_graph_dot(graph, layout)
    if args.render:
        print(dot.render(args.out, format="png", cleanup=True))
    elif args.out:
        with open(args.out, "w") as f:
            f.write(dot.source)
        print(f"Wrote {args.out}")
    else:
        print(dot.source)

def _layout_config(args):
    return dag_algorithms.LayoutConfig(
        node_width=args.node_width,
        node_height=args.node_height,
        horizontal_gap=args.horizontal_gap,
        vertical_gap=args.vertical_gap,
    )

# ----------------------
# Argument Parser
# ----------------------

def build_parser():
    parser = argparse.ArgumentParser(description="gitdag: in-memory git object store and commit DAG explorer")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--commit", action="append", default=[], metavar="MESSAGE",
                        help="Add an empty-tree commit on HEAD before running the command (repeatable)")
    parser.add_argument("--author", default="gitdag <gitdag@localhost>", help="Author for --commit")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_log = subparsers.add_parser("log", help="Show commit history")
    p_log.add_argument("ref", nargs="?", help="Start from this branch or commit (default: HEAD)")
    p_log.set_defaults(func=cmd_log)

    p_stats = subparsers.add_parser("stats", help="Show repository statistics")
    p_stats.set_defaults(func=cmd_stats)

    p_branches = subparsers.add_parser("branches", help="List branches")
    p_branches.set_defaults(func=cmd_branches)

    p_show = subparsers.add_parser("show", help="Show a commit with its tree and parents")
    p_show.add_argument("sha", help="Commit SHA, prefix or branch name")
    p_show.set_defaults(func=cmd_show)

    p_base = subparsers.add_parser("merge-base", help="Find a common ancestor of two branches")
    p_base.add_argument("branch_a")
    p_base.add_argument("branch_b")
    p_base.set_defaults(func=cmd_merge_base)

    p_topo = subparsers.add_parser("topo", help="Topological order, newest first")
    p_topo.set_defaults(func=cmd_topo)

    p_path = subparsers.add_parser("path", help="Shortest path between two commits")
    p_path.add_argument("start")
    p_path.add_argument("end")
    p_path.set_defaults(func=cmd_path)

    p_metrics = subparsers.add_parser("metrics", help="Degree and depth metrics")
    p_metrics.set_defaults(func=cmd_metrics)

    p_cycles = subparsers.add_parser("cycles", help="Check the commit graph for cycles")
    p_cycles.set_defaults(func=cmd_cycles)

    p_layout = subparsers.add_parser("layout", help="Hierarchical layout coordinates")
    p_dot = subparsers.add_parser("dot", help="Graphviz DOT for the commit graph")
    p_dot.add_argument("--out", help="Write DOT (or the rendered image with --render) here")
    p_dot.add_argument("--render", action="store_true", help="Render a PNG with Graphviz")
    defaults = dag_algorithms.LayoutConfig()
    for p in (p_layout, p_dot):
        p.add_argument("--node-width", type=float, default=defaults.node_width)
        p.add_argument("--node-height", type=float, default=defaults.node_height)
        p.add_argument("--horizontal-gap", type=float, default=defaults.horizontal_gap)
        p.add_argument("--vertical-gap", type=float, default=defaults.vertical_gap)
    p_layout.set_defaults(func=cmd_layout)
    p_dot.set_defaults(func=cmd_dot)

    return parser

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "dot" and args.render and not args.out:
        parser.error("dot --render requires --out")

    repo = create_sample_repository()
    if args.commit:
        empty_tree = GitTree()
        repo.store_object(empty_tree)
        for message in args.commit:
            repo.commit(empty_tree.sha, message, args.author)
    args.func(repo, args)

if __name__ == "__main__":
    main()
