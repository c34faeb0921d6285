"""
Workspace: the composition root of the tracker.

Owns one link table, the repositories and the status projector, and offers
the operations that span more than one repository (linking, sprint planning,
project deletion).
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .bpmn import BPMNRepository
from .events import StatusProjector
from .ids import IdGenerator, SequentialIds, UUIDIds
from .issues import IssueRepository
from .links import LinkTable
from .projects import ProjectRepository, SprintRepository
from .schema import utcnow
from .status import element_colors

logger = logging.getLogger(__name__)


class Workspace:
    """All tracker state of one process, wired together."""

    def __init__(self, ids: Optional[IdGenerator] = None, clock: Callable[[], datetime] = utcnow):
        self.ids = ids or UUIDIds()
        self.links = LinkTable()
        self.issues = IssueRepository(self.links, self.ids, clock)
        self.bpmn = BPMNRepository(self.links, self.ids, clock)
        self.projects = ProjectRepository(self.ids, clock)
        self.sprints = SprintRepository(self.ids, clock)
        self.projector = StatusProjector(self.issues, self.bpmn, clock)

    @classmethod
    def from_config(cls, cfg) -> "Workspace":
        ids = SequentialIds(cfg.id_prefix) if cfg.id_prefix else UUIDIds()
        return cls(ids=ids)

    # ── Linking ─────────────────────────────────────────────────────────────

    def link(self, issue_id: str, diagram_id: str, element_id: str) -> bool:
        """
        Link an issue to a diagram element.

        Both repositories read the same link table, so one write is enough
        for the issue and element views to agree.
        """
        if self.issues.get(issue_id) is None:
            return False
        return self.issues.link_to_bpmn(issue_id, diagram_id, element_id)

    def unlink(self, issue_id: str, diagram_id: str, element_id: str) -> bool:
        return self.issues.unlink_from_bpmn(issue_id, diagram_id, element_id)

    # ── Sprint planning ─────────────────────────────────────────────────────

    def assign_to_sprint(self, issue_id: str, sprint_id: Optional[str]):
        """Move an issue into a sprint (or the backlog) on both sides."""
        issue = self.issues.get(issue_id)
        if issue is None:
            return None
        if sprint_id is not None and self.sprints.get(sprint_id) is None:
            return None
        if issue.sprint_id and issue.sprint_id != sprint_id:
            self.sprints.remove_issue(issue.sprint_id, issue_id)
        if sprint_id is not None:
            self.sprints.add_issue(sprint_id, issue_id)
        return self.issues.assign_to_sprint(issue_id, sprint_id)

    def delete_issue(self, issue_id: str) -> bool:
        issue = self.issues.get(issue_id)
        if issue is None:
            return False
        if issue.sprint_id:
            self.sprints.remove_issue(issue.sprint_id, issue_id)
        return self.issues.delete(issue_id)

    def delete_sprint(self, sprint_id: str) -> bool:
        """Delete a sprint; its issues go back to the backlog."""
        if self.sprints.get(sprint_id) is None:
            return False
        for issue in self.issues.get_by_sprint(sprint_id):
            self.issues.assign_to_sprint(issue.id, None)
        return self.sprints.delete(sprint_id)

    def delete_project(self, project_id: str) -> bool:
        """Delete a project with its issues, sprints and diagrams."""
        if self.projects.get(project_id) is None:
            return False
        for issue in self.issues.get_by_project(project_id):
            self.issues.delete(issue.id)
        for sprint in self.sprints.get_by_project(project_id):
            self.sprints.delete(sprint.id)
        for diagram in self.bpmn.get_diagrams_by_project(project_id):
            self.bpmn.delete_diagram(diagram.id)
        logger.info("Deleted project %s with its issues, sprints and diagrams", project_id)
        return self.projects.delete(project_id)

    # ── Views ───────────────────────────────────────────────────────────────

    def diagram_overview(self, diagram_id: str) -> Optional[Dict[str, Any]]:
        """Diagram, elements and the colour each linked element is painted with."""
        diagram = self.bpmn.get_diagram(diagram_id)
        if diagram is None:
            return None

        elements = []
        for element in self.bpmn.get_elements_by_diagram(diagram_id):
            entry = element.to_dict()
            status = self.bpmn.get_element_status(element.element_id)
            entry["status"] = status.to_dict() if status else None
            entry["colors"] = element_colors(status.status) if status else None
            elements.append(entry)

        return {
            "diagram": diagram.to_dict(),
            "elements": elements,
            "issues": [i.to_dict() for i in self.issues.get_issues_by_bpmn_diagram(diagram_id)],
        }
