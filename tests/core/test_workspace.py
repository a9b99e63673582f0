from __future__ import annotations

from pathlib import Path

import pytest

from micro_quiz.core import workspace


def test_ensure_workspace_creates_directories(tmp_path, monkeypatch):
    root = tmp_path / "data"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    layout = workspace.ensure_workspace()

    assert layout.home == root.resolve()
    assert set(layout.directories) == {"config", "logs", "store"}
    for name, path in layout.items():
        assert path.is_dir()
        assert layout.created[name] is True
    assert layout.created["home"] is True


def test_ensure_workspace_is_idempotent(tmp_path, monkeypatch):
    root = tmp_path / "existing"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    first = workspace.ensure_workspace()
    second = workspace.ensure_workspace()

    assert first.home == second.home
    assert all(not created for created in second.created.values())


def test_explicit_path_wins_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(tmp_path / "from-env"))
    custom = tmp_path / "custom-root"

    layout = workspace.ensure_workspace(path=custom)

    assert layout.home == custom.resolve()
    assert not (tmp_path / "from-env").exists()


def test_ensure_workspace_without_create(tmp_path):
    root = tmp_path / "deferred"

    layout = workspace.ensure_workspace(
        env={workspace.WORKSPACE_ENV: str(root)}, create=False
    )

    assert layout.home == root.resolve()
    assert layout.path_for("store") == root.resolve() / "store"
    assert not root.exists()
    assert all(not created for created in layout.created.values())


def test_ensure_workspace_errors_when_path_is_file(tmp_path):
    root = tmp_path / "file"
    root.write_text("not a dir", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=root)


def test_path_for_unknown_key_errors(tmp_path):
    layout = workspace.ensure_workspace(path=tmp_path / "ws", create=False)

    with pytest.raises(KeyError):
        layout.path_for("unknown")


def test_default_root_falls_back_to_tempdir(tmp_path, monkeypatch):
    monkeypatch.delenv(workspace.WORKSPACE_ENV, raising=False)
    monkeypatch.setattr(workspace.tempfile, "gettempdir", lambda: str(tmp_path))
    real_ensure_dir = workspace._ensure_dir

    def fake_ensure_dir(path: Path) -> bool:
        if path == workspace.DEFAULT_WORKSPACE.resolve():
            raise PermissionError("denied")
        return real_ensure_dir(path)

    monkeypatch.setattr(workspace, "_ensure_dir", fake_ensure_dir)

    layout = workspace.ensure_workspace()

    assert layout.home == tmp_path / "micro-quiz-data"
    assert layout.created["home"] is True


def test_explicit_root_does_not_fall_back(tmp_path, monkeypatch):
    def deny(path: Path) -> bool:  # noqa: D401
        raise PermissionError("nope")

    monkeypatch.setattr(workspace, "_ensure_dir", deny)

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=tmp_path / "locked")
