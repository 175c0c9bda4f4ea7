import pytest

from gitdag import GitBlob, GitTree, Repository, create_sample_repository


@pytest.fixture
def repo():
    return Repository()


@pytest.fixture
def sample_repo():
    return create_sample_repository()


@pytest.fixture
def tree_sha(repo):
    """Tree with one README blob, stored in the ``repo`` fixture."""
    blob = GitBlob("hello")
    repo.store_object(blob)
    tree = GitTree()
    tree.add_entry("100644", "README.md", blob.sha, "blob")
    return repo.store_object(tree)


@pytest.fixture
def chain_edges():
    # A -> B -> C, newest first
    return [("A", "B"), ("B", "C")]


@pytest.fixture
def diamond_edges():
    # M merges A and B, both children of R
    return [("M", "A"), ("M", "B"), ("A", "R"), ("B", "R")]
