"""CLI smoke tests against the built-in sample repository."""

import pytest

from gitdag import main


def test_stats(capsys):
    main(["stats"])
    out = capsys.readouterr().out

    assert "Commits:  4" in out
    assert "Branches: 2" in out
    assert "HEAD:     main" in out


def test_log_with_extra_commits(capsys):
    main(["--commit", "extra work", "log"])
    out = capsys.readouterr().out

    assert out.index("extra work") < out.index("Add tests") < out.index("Initial commit")
    assert "(main)" in out


def test_log_feature_branch(capsys):
    main(["log", "feature-branch"])
    out = capsys.readouterr().out

    assert "Add new feature" in out
    assert "Add tests" not in out


def test_merge_base(capsys):
    main(["merge-base", "feature-branch", "main"])

    assert "Add package.json and update README" in capsys.readouterr().out


def test_merge_base_unknown_branch(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["merge-base", "main", "nope"])

    assert excinfo.value.code == 1
    assert "No common ancestor" in capsys.readouterr().out


def test_path_between_branches(capsys):
    main(["path", "main", "feature-branch"])

    assert capsys.readouterr().out.count("->") == 2


def test_show_branch_tip(capsys):
    main(["show", "feature-branch"])
    out = capsys.readouterr().out

    assert "feature.js" in out
    assert "Add package.json and update README" in out


def test_unknown_ref_exits(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["show", "nope"])

    assert excinfo.value.code == 1
    assert "Unknown ref or commit: nope" in capsys.readouterr().out


def test_cycles_topo_metrics_layout(capsys):
    main(["cycles"])
    main(["topo"])
    main(["metrics"])
    main(["layout", "--vertical-gap", "10"])
    out = capsys.readouterr().out

    assert "No cycles." in out
    assert "Max depth:      2" in out
    assert "feature-branch: 3 commits" in out
    assert "layer=0" in out


def test_dot_to_stdout_and_file(capsys, tmp_path):
    main(["dot"])
    assert capsys.readouterr().out.startswith("digraph commits")

    out_file = tmp_path / "graph.dot"
    main(["dot", "--out", str(out_file)])
    assert "digraph commits" in out_file.read_text()


def test_dot_render_requires_out():
    with pytest.raises(SystemExit):
        main(["dot", "--render"])
