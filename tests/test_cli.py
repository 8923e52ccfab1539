from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeUpstream
from postcache.cli import main as cli_main
from postcache.cli.state import load_state
from postcache.config import settings
from postcache.domain.enums import Environment, RefreshType
from postcache.domain.models import Post
from postcache.repositories.post_store import PostStore
from postcache.services.refresh_service import RefreshCoordinator


@pytest.fixture(autouse=True)
def cli_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, coordinator: RefreshCoordinator
) -> Path:
    state_file = tmp_path / "state" / "cli.json"
    monkeypatch.setattr(settings, "cli_state_path", str(state_file))
    monkeypatch.setattr(cli_main, "build_coordinator", lambda env=None: coordinator)
    return state_file


def _run(*argv: str) -> int:
    with pytest.raises(SystemExit) as excinfo:
        cli_main.app(list(argv))
    return int(excinfo.value.code or 0)


def _seed(store: PostStore, *post_ids: int) -> None:
    for post_id in post_ids:
        store.write_post(Post(user_id=1, id=post_id, title=f"cached {post_id}", body="b"))


def test_saved_posts_lists_titles(store: PostStore, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(store, 2, 1)
    assert _run("saved-posts") == 0
    out = capsys.readouterr().out
    assert "- [1] cached 1" in out
    assert "- [2] cached 2" in out


def test_posts_without_id_lists_files(store: PostStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run("posts") == 0
    assert "No JSON files" in capsys.readouterr().out

    _seed(store, 3)
    assert _run("posts") == 0
    assert "3.json" in capsys.readouterr().out


def test_posts_with_id_shows_relations(
    upstream: FakeUpstream, capsys: pytest.CaptureFixture[str]
) -> None:
    assert _run("save-all-with-relations") == 0
    assert "Saved 3 of 3 posts with relations" in capsys.readouterr().out

    assert _run("posts", "1") == 0
    out = capsys.readouterr().out
    assert "Author: User 1" in out
    assert "Comments (0):" in out

    assert _run("posts", "99") == 1


def test_save_and_delete(store: PostStore, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run("save", "2") == 0
    assert store.exists(2)
    assert _run("delete", "2") == 0
    assert _run("delete", "2") == 1
    assert "No saved post with id 2" in capsys.readouterr().out


def test_quick_and_hard_refresh(store: PostStore, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(store, 1)
    assert _run("quick-refresh") == 0
    assert "Added 2 new posts (3 checked)" in capsys.readouterr().out

    assert _run("quick-refresh") == 0
    assert "No new posts" in capsys.readouterr().out

    assert _run("hard-refresh") == 0
    assert "Refreshed 3 of 3 posts" in capsys.readouterr().out


def test_filter_command(store: PostStore, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(store, 1, 2, 3)
    assert _run("filter", "--min-id", "2", "--title", "CACHED") == 0
    out = capsys.readouterr().out
    assert "Found 2 matching posts" in out
    assert "- [1]" not in out

    assert _run("filter") == 2


def test_filter_with_bad_date_keeps_other_filters(
    store: PostStore, capsys: pytest.CaptureFixture[str]
) -> None:
    _seed(store, 4, 5)
    assert _run("filter", "--min-id", "5", "--date-after", "not-a-date") == 0
    out = capsys.readouterr().out
    assert "[WARN] Ignoring --date-after" in out
    assert "Found 1 matching posts" in out
    assert "- [5]" in out
    assert "- [4]" not in out


def test_export_zip(store: PostStore, capsys: pytest.CaptureFixture[str]) -> None:
    _seed(store, 1)
    assert _run("export-zip", "1", "2") == 0
    assert "posts_" in capsys.readouterr().out
    assert _run("export-zip", "5") == 1


def test_upstream_failure_exits_with_error(
    upstream: FakeUpstream, capsys: pytest.CaptureFixture[str]
) -> None:
    upstream.fail_all = True
    assert _run("save-all") == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_toggle_relations_persists(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run("toggle-relations", "on") == 0
    assert load_state(cli_env).with_relations is True
    assert _run("toggle-relations") == 0
    assert load_state(cli_env).with_relations is False
    assert _run("toggle-relations", "maybe") == 2
    assert "Fetch with relations: OFF" in capsys.readouterr().out


def test_env_command_persists(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _run("env", "stage") == 0
    assert load_state(cli_env).environment is Environment.STAGING
    assert _run("env") == 0
    assert "Current environment: STAGING" in capsys.readouterr().out
    assert _run("env", "qa") == 2


def test_unknown_global_env_is_usage_error() -> None:
    assert _run("--env", "qa", "saved-posts") == 2


def test_refresh_conflict_reports_running_operation(
    coordinator: RefreshCoordinator, capsys: pytest.CaptureFixture[str]
) -> None:
    state = coordinator.gate.begin(RefreshType.HARD, True)
    try:
        assert _run("quick-refresh") == 1
    finally:
        coordinator.gate.end()
    out = capsys.readouterr().out
    assert "Refresh already in progress" in out
    assert "type=hard_refresh" in out
    assert f"({state.refresh_start_time})" in out
