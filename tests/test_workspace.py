"""
Tests for projects, sprints, board views and workspace-level cascades.
"""
from datetime import datetime, timezone

import pytest

from pkg.tracker.board import board_stats, kanban_columns, sprint_board
from pkg.tracker.config import TrackerConfig
from pkg.tracker.ids import SequentialIds, UUIDIds
from pkg.tracker.schema import IssueStatus, IssueType, SprintStatus
from pkg.tracker.workspace import Workspace

START = datetime(2024, 3, 1, tzinfo=timezone.utc)
END = datetime(2024, 3, 15, tzinfo=timezone.utc)


def add_issue(ws, title="Issue", project_id="P-1", **kwargs):
    return ws.issues.add(title=title, project_id=project_id, reporter_id="u1", **kwargs)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Project Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_project_crud(ws):
    project = ws.projects.add("Payments", owner_id="u1", member_ids=["u2"])
    assert project.id == "T-project-001"
    assert ws.projects.get(project.id).member_ids == ["u2"]

    updated = ws.projects.update(project.id, name="Payments v2", member_ids=("u2", "u3"))
    assert updated.name == "Payments v2"
    assert updated.member_ids == ["u2", "u3"]
    assert updated.updated_at > project.updated_at

    assert ws.projects.update("nope", name="x") is None
    assert ws.projects.delete(project.id)
    assert ws.projects.get(project.id) is None


def test_current_project_is_cleared_on_delete(ws):
    project = ws.projects.add("Payments", owner_id="u1")
    assert ws.projects.set_current(project.id).id == project.id
    assert ws.projects.set_current("nope") is None

    ws.projects.set_current(project.id)
    ws.projects.delete(project.id)
    assert ws.projects.current() is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sprint Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_sprint_rejects_inverted_dates(ws):
    with pytest.raises(ValueError):
        ws.sprints.add("Sprint 1", "P-1", start_date=END, end_date=START)


def test_only_one_active_sprint_per_project(ws):
    s1 = ws.sprints.add("Sprint 1", "P-1", START, END)
    s2 = ws.sprints.add("Sprint 2", "P-1", START, END)
    other = ws.sprints.add("Sprint A", "P-2", START, END)

    assert ws.sprints.can_start("P-1")
    assert ws.sprints.start(s1.id).status == SprintStatus.ACTIVE
    assert not ws.sprints.can_start("P-1")
    assert ws.sprints.start(s2.id) is None
    assert ws.sprints.get_active("P-1").id == s1.id

    assert ws.sprints.start(other.id).status == SprintStatus.ACTIVE

    assert ws.sprints.complete(s1.id).status == SprintStatus.COMPLETED
    assert ws.sprints.can_start("P-1")
    assert ws.sprints.complete(s1.id) is None


def test_sprint_issue_ids_are_unique(ws):
    sprint = ws.sprints.add("Sprint 1", "P-1", START, END)
    ws.sprints.add_issue(sprint.id, "I-1")
    ws.sprints.add_issue(sprint.id, "I-1")
    ws.sprints.add_issue(sprint.id, "I-2")
    assert ws.sprints.get(sprint.id).issue_ids == ["I-1", "I-2"]
    assert ws.sprints.remove_issue(sprint.id, "I-1").issue_ids == ["I-2"]
    assert ws.sprints.add_issue("nope", "I-1") is None


def test_assign_to_sprint_keeps_both_sides_in_step(ws):
    s1 = ws.sprints.add("Sprint 1", "P-1", START, END)
    s2 = ws.sprints.add("Sprint 2", "P-1", START, END)
    issue = add_issue(ws)

    ws.assign_to_sprint(issue.id, s1.id)
    assert ws.issues.get(issue.id).sprint_id == s1.id
    assert ws.sprints.get(s1.id).issue_ids == [issue.id]

    ws.assign_to_sprint(issue.id, s2.id)
    assert ws.sprints.get(s1.id).issue_ids == []
    assert ws.sprints.get(s2.id).issue_ids == [issue.id]

    ws.assign_to_sprint(issue.id, None)
    assert ws.sprints.get(s2.id).issue_ids == []
    assert [i.id for i in ws.issues.get_backlog("P-1")] == [issue.id]

    assert ws.assign_to_sprint(issue.id, "nope") is None
    assert ws.assign_to_sprint("nope", s1.id) is None


def test_delete_sprint_returns_issues_to_backlog(ws):
    sprint = ws.sprints.add("Sprint 1", "P-1", START, END)
    issue = add_issue(ws)
    ws.assign_to_sprint(issue.id, sprint.id)

    assert ws.delete_sprint(sprint.id)
    assert ws.sprints.get(sprint.id) is None
    assert ws.issues.get(issue.id).sprint_id is None
    assert not ws.delete_sprint(sprint.id)


def test_delete_issue_leaves_sprint(ws):
    sprint = ws.sprints.add("Sprint 1", "P-1", START, END)
    issue = add_issue(ws)
    ws.assign_to_sprint(issue.id, sprint.id)
    assert ws.delete_issue(issue.id)
    assert ws.sprints.get(sprint.id).issue_ids == []
    assert not ws.delete_issue(issue.id)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Backlog & Board Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_backlog_excludes_sprint_and_other_projects(ws):
    sprint = ws.sprints.add("Sprint 1", "P-1", START, END)
    planned = add_issue(ws, "planned")
    ws.assign_to_sprint(planned.id, sprint.id)
    loose = add_issue(ws, "loose")
    add_issue(ws, "elsewhere", project_id="P-2")

    assert [i.id for i in ws.issues.get_backlog("P-1")] == [loose.id]


def test_kanban_columns(ws):
    a = add_issue(ws, "a")
    b = add_issue(ws, "b", status=IssueStatus.IN_PROGRESS)
    c = add_issue(ws, "c", status=IssueStatus.DONE)
    columns = kanban_columns(ws.issues.list_all())
    assert list(columns) == ["TO_DO", "IN_PROGRESS", "DONE"]
    assert [i.id for i in columns["TO_DO"]] == [a.id]
    assert [i.id for i in columns["IN_PROGRESS"]] == [b.id]
    assert [i.id for i in columns["DONE"]] == [c.id]


def test_board_stats(ws):
    add_issue(ws, "a", estimated_hours=2)
    add_issue(ws, "b", type=IssueType.BUG, status=IssueStatus.DONE, estimated_hours=1.5)
    add_issue(ws, "c", priority="HIGH")
    stats = board_stats(ws.issues.list_all())
    assert stats["total"] == 3
    assert stats["by_status"] == {"TO_DO": 2, "IN_PROGRESS": 0, "DONE": 1}
    assert stats["by_type"] == {"TASK": 2, "BUG": 1}
    assert stats["by_priority"] == {"MEDIUM": 2, "HIGH": 1}
    assert stats["estimated_hours"] == 3.5


def test_sprint_board_uses_active_sprint(ws):
    sprint = ws.sprints.add("Sprint 1", "P-1", START, END)
    ws.sprints.start(sprint.id)
    issue = add_issue(ws, status=IssueStatus.IN_PROGRESS)
    ws.assign_to_sprint(issue.id, sprint.id)
    add_issue(ws, "backlog item")

    board = sprint_board(ws, "P-1")
    assert board["sprint"]["id"] == sprint.id
    assert [i["id"] for i in board["columns"]["IN_PROGRESS"]] == [issue.id]
    assert board["stats"]["total"] == 1

    empty = sprint_board(ws, "P-2")
    assert empty["sprint"] is None
    assert empty["stats"]["total"] == 0

    # a sprint of another project is not shown
    assert sprint_board(ws, "P-2", sprint.id)["sprint"] is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Workspace Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_link_unknown_issue_is_noop(ws):
    diagram = ws.bpmn.add_diagram("Flow", "P-1")
    ws.bpmn.add_element(diagram.id, "Task_1")
    assert not ws.link("nope", diagram.id, "Task_1")
    assert len(ws.links) == 0


def test_issue_and_element_views_agree(ws):
    diagram = ws.bpmn.add_diagram("Flow", "P-1")
    element = ws.bpmn.add_element(diagram.id, "Task_1")
    issue = add_issue(ws)
    ws.link(issue.id, diagram.id, "Task_1")
    ws.link(issue.id, diagram.id, "Task_1")

    assert ws.bpmn.get_element(element.id).linked_issue_ids == [issue.id]
    assert len(ws.issues.get(issue.id).linked_bpmn_elements) == 1


def test_delete_project_cascades(ws):
    project = ws.projects.add("Payments", owner_id="u1")
    other = ws.projects.add("Other", owner_id="u1")
    sprint = ws.sprints.add("Sprint 1", project.id, START, END)
    diagram = ws.bpmn.add_diagram("Flow", project.id)
    ws.bpmn.add_element(diagram.id, "Task_1")
    issue = add_issue(ws, project_id=project.id)
    kept = add_issue(ws, project_id=other.id)
    ws.link(issue.id, diagram.id, "Task_1")

    assert ws.delete_project(project.id)
    assert ws.projects.get(project.id) is None
    assert ws.issues.get(issue.id) is None
    assert ws.sprints.get(sprint.id) is None
    assert ws.bpmn.get_diagram(diagram.id) is None
    assert ws.bpmn.get_element_status("Task_1") is None
    assert ws.issues.get(kept.id) is not None
    assert not ws.delete_project(project.id)


def test_diagram_overview(ws):
    diagram = ws.bpmn.add_diagram("Flow", "P-1", xml="<definitions/>")
    ws.bpmn.add_element(diagram.id, "Task_1")
    ws.bpmn.add_element(diagram.id, "Task_2")
    issue = add_issue(ws, status=IssueStatus.DONE)
    ws.link(issue.id, diagram.id, "Task_1")

    overview = ws.diagram_overview(diagram.id)
    assert overview["diagram"]["xml"] == "<definitions/>"
    first, second = overview["elements"]
    assert first["status"]["status"] == "completed"
    assert first["colors"] == {"stroke": "#4caf50", "fill": "#e8f5e9"}
    assert second["status"] is None
    assert [i["id"] for i in overview["issues"]] == [issue.id]
    assert ws.diagram_overview("nope") is None


def test_workspace_from_config():
    assert isinstance(Workspace.from_config(TrackerConfig()).ids, UUIDIds)
    ws = Workspace.from_config(TrackerConfig(id_prefix="ISS"))
    assert isinstance(ws.ids, SequentialIds)
    assert add_issue(ws).id == "ISS-issue-001"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_config_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.delenv("TRACKER_CONFIG", raising=False)
    cfg = TrackerConfig.load()
    assert cfg.port == 3000
    assert TrackerConfig.load(str(tmp_path / "missing.yaml")) == TrackerConfig()


def test_config_loads_yaml_and_ignores_unknown_keys(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("port: 8080\nid_prefix: ISS\nlog_level: DEBUG\nunknown: 1\n")
    cfg = TrackerConfig.load(str(path))
    assert cfg.port == 8080
    assert cfg.id_prefix == "ISS"
    assert cfg.log_level == "DEBUG"
    assert cfg.host == "127.0.0.1"


def test_config_from_env(tmp_path, monkeypatch):
    path = tmp_path / "tracker.yaml"
    path.write_text("host: 0.0.0.0\n")
    monkeypatch.setenv("TRACKER_CONFIG", str(path))
    assert TrackerConfig.load().host == "0.0.0.0"


def test_config_broken_yaml_falls_back(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text("port: [unclosed\n")
    assert TrackerConfig.load(str(path)) == TrackerConfig()
