import json
from pathlib import Path
from typing import Any

import pytest

from wslock.workspace.closure import compute_closure, iter_workspace_dependencies
from wslock.workspace.exceptions import WorkspaceNotFoundError
from wslock.workspace.manifest import WorkspaceManifest
from wslock.workspace.project import Project, Workspace, load_project
from wslock.workspace.structures import parse_ident


def write_monorepo(root: Path, packages: dict[str, dict[str, Any]]) -> Project:
    root.mkdir(parents=True, exist_ok=True)
    (root / "package.json").write_text(json.dumps({"name": "monorepo", "private": True, "workspaces": ["packages/*"]}))
    for name, manifest in packages.items():
        directory = root / "packages" / name
        directory.mkdir(parents=True)
        (directory / "package.json").write_text(json.dumps({"name": name, "version": "1.0.0", **manifest}))
    return load_project(root)


def names(closure: frozenset[Workspace]) -> set[str]:
    return {str(workspace.ident) for workspace in closure}


class TestComputeClosure:
    """Tests for the workspace closure of a target."""

    def test_direct_dependency(self, tmp_path: Path):
        project = write_monorepo(
            tmp_path,
            {
                "a": {"dependencies": {"b": "workspace:*"}},
                "b": {},
                "c": {},
            },
        )
        closure = compute_closure(project, project.get_workspace_by_ident("a"))
        assert names(closure) == {"a", "b"}

    def test_target_always_included(self, tmp_path: Path):
        project = write_monorepo(tmp_path, {"c": {"dependencies": {"react": "^18.0.0"}}})
        target = project.get_workspace_by_ident("c")
        assert compute_closure(project, target) == frozenset({target})

    def test_transitive_through_every_hard_scope(self, tmp_path: Path):
        project = write_monorepo(
            tmp_path,
            {
                "a": {"dependencies": {"b": "workspace:^"}},
                "b": {"devDependencies": {"c": "^1.0.0"}},
                "c": {"peerDependencies": {"d": "workspace:packages/d"}},
                "d": {},
            },
        )
        closure = compute_closure(project, project.get_workspace_by_ident("a"))
        assert names(closure) == {"a", "b", "c", "d"}

    def test_optional_dependencies_do_not_grow_closure(self, tmp_path: Path):
        project = write_monorepo(
            tmp_path,
            {
                "a": {"optionalDependencies": {"b": "workspace:*"}},
                "b": {},
            },
        )
        assert names(compute_closure(project, project.get_workspace_by_ident("a"))) == {"a"}

    def test_non_matching_range_is_external(self, tmp_path: Path):
        project = write_monorepo(
            tmp_path,
            {
                "a": {"dependencies": {"b": "^2.0.0"}},
                "b": {},
            },
        )
        assert names(compute_closure(project, project.get_workspace_by_ident("a"))) == {"a"}

    def test_cycle(self, tmp_path: Path):
        project = write_monorepo(
            tmp_path,
            {
                "a": {"dependencies": {"b": "workspace:*"}},
                "b": {"dependencies": {"a": "workspace:*"}},
            },
        )
        closure_a = compute_closure(project, project.get_workspace_by_ident("a"))
        closure_b = compute_closure(project, project.get_workspace_by_ident("b"))
        assert names(closure_a) == names(closure_b) == {"a", "b"}

    def test_closure_is_fixed_point(self, tmp_path: Path):
        project = write_monorepo(
            tmp_path,
            {
                "a": {"dependencies": {"b": "workspace:*", "c": "workspace:*"}},
                "b": {"dependencies": {"d": "workspace:*"}},
                "c": {"devDependencies": {"d": "workspace:*"}},
                "d": {},
                "e": {"dependencies": {"a": "workspace:*"}},
            },
        )
        closure = compute_closure(project, project.get_workspace_by_ident("a"))
        for member in closure:
            assert compute_closure(project, member) <= closure
            for dependency in iter_workspace_dependencies(project, member):
                assert dependency in closure
        assert "e" not in names(closure)

    def test_declaration_order_does_not_matter(self, tmp_path: Path):
        forward = write_monorepo(
            tmp_path / "forward",
            {"a": {"dependencies": {"b": "workspace:*", "c": "workspace:*"}}, "b": {}, "c": {}},
        )
        backward = write_monorepo(
            tmp_path / "backward",
            {"a": {"dependencies": {"c": "workspace:*", "b": "workspace:*"}}, "c": {}, "b": {}},
        )
        closure_forward = compute_closure(forward, forward.get_workspace_by_ident("a"))
        closure_backward = compute_closure(backward, backward.get_workspace_by_ident("a"))
        assert names(closure_forward) == names(closure_backward) == {"a", "b", "c"}

    def test_target_outside_project(self, tmp_path: Path):
        project = write_monorepo(tmp_path, {"a": {}})
        stranger = Workspace(
            ident=parse_ident("stranger"),
            cwd=tmp_path / "elsewhere",
            relative_cwd="elsewhere",
            manifest=WorkspaceManifest(name="stranger"),
        )
        with pytest.raises(WorkspaceNotFoundError, match="not a member"):
            compute_closure(project, stranger)
