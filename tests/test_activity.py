"""Tests for the activity logger and board templates."""
import pytest

from kanbanflow.config import settings
from kanbanflow.services import activity
from kanbanflow.utils import load_board_template, merge_unique


@pytest.mark.asyncio
async def test_log_and_list(test_session):
    """Test activities are stored and listed newest first, filtered by card."""
    await activity.log("card_created", "u1", {"board": "b1", "card": "c1"}, {"title": "A"})
    await activity.log("card_created", "u1", {"board": "b1", "card": "c2"})
    await activity.log("board_created", "u1", {"board": "b2"})

    entries = await activity.list_board_activity(test_session, "b1")
    assert len(entries) == 2
    assert {e.card_id for e in entries} == {"c1", "c2"}

    entries = await activity.list_board_activity(test_session, "b1", card_id="c1")
    assert [e.activity_metadata for e in entries] == [{"title": "A"}]


@pytest.mark.asyncio
async def test_log_failure_is_swallowed(monkeypatch):
    """Test a failing activity write does not raise."""

    def broken():
        raise RuntimeError("database gone")

    monkeypatch.setattr(activity, "session_factory", broken)

    await activity.log("card_created", "u1", {"board": "b1"})


def test_default_template():
    """Test the built-in default template defines the four stages."""
    template = load_board_template("default")

    assert template is not None
    assert [entry["list_type"] for entry in template["lists"]] == [
        "todo", "in_progress", "review", "done"
    ]
    assert load_board_template("missing") is None


def test_custom_templates_dir(tmp_path, monkeypatch):
    """Test templates from BOARD_TEMPLATES_DIR are found by id."""
    (tmp_path / "sprint.yml").write_text(
        "id: sprint\nlists:\n  - title: Backlog\n    list_type: todo\n"
    )
    monkeypatch.setattr(settings, "board_templates_dir", str(tmp_path))

    template = load_board_template("sprint")

    assert template["lists"] == [{"title": "Backlog", "list_type": "todo"}]


def test_merge_unique():
    """Test the order-preserving union."""
    assert merge_unique(["a", "b"], ["b", "c", "a", "d"]) == ["a", "b", "c", "d"]


def test_non_mapping_template_is_ignored(tmp_path, monkeypatch):
    """Test a template file whose top level is not a mapping is skipped."""
    (tmp_path / "list.yml").write_text("- id: sprint\n")
    (tmp_path / "scalar.yml").write_text("just text\n")
    monkeypatch.setattr(settings, "board_templates_dir", str(tmp_path))

    assert load_board_template("sprint") is None
    assert load_board_template("default") is not None
