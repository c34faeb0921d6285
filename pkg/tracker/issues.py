"""
Issue repository (in-memory).

Provides CRUD, board/backlog queries and the issue side of BPMN linking.
Links live in the shared LinkTable; issues handed out are copies with
`linked_bpmn_elements` hydrated from it.
"""
import logging
from dataclasses import fields, replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .events import EventEmitter
from .ids import IdGenerator, UUIDIds
from .links import Link, LinkTable
from .schema import (
    Issue,
    IssueStatus,
    IssueType,
    LinkedBPMNElement,
    Priority,
    coerce,
    utcnow,
)

logger = logging.getLogger(__name__)

_READ_ONLY = {"id", "created_at", "updated_at"}
_UPDATABLE = {f.name for f in fields(Issue)} - _READ_ONLY
_ENUM_FIELDS = {"type": IssueType, "status": IssueStatus, "priority": Priority}


class IssueRepository(EventEmitter):
    """In-memory store for issues."""

    def __init__(
        self,
        links: Optional[LinkTable] = None,
        ids: Optional[IdGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__()
        self.links = links if links is not None else LinkTable()
        self.ids = ids or UUIDIds()
        self.clock = clock
        self._issues: Dict[str, Issue] = {}

    def _hydrate(self, issue: Issue) -> Issue:
        linked = [
            LinkedBPMNElement(link.diagram_id, link.element_id)
            for link in self.links.elements_for_issue(issue.id)
        ]
        return replace(issue, linked_bpmn_elements=linked)

    def _hydrate_all(self, issues: Iterable[Issue]) -> List[Issue]:
        return [self._hydrate(issue) for issue in issues]

    def _set_links(self, issue_id: str, pairs: Iterable) -> List[Link]:
        """Replace the links of an issue; returns the links that were dropped."""
        old = self.links.remove_issue(issue_id)
        for pair in pairs:
            if isinstance(pair, dict):
                pair = LinkedBPMNElement.from_dict(pair)
            self.links.add(issue_id, pair.diagram_id, pair.element_id)
        return [link for link in old if link not in self.links]

    # ── CRUD ────────────────────────────────────────────────────────────────

    def add(
        self,
        title: str,
        project_id: str,
        reporter_id: str,
        description: str = "",
        type=IssueType.TASK,
        status=IssueStatus.TO_DO,
        priority=Priority.MEDIUM,
        assignee_id: Optional[str] = None,
        sprint_id: Optional[str] = None,
        estimated_hours: Optional[float] = None,
        linked_bpmn_elements: Optional[Iterable] = None,
    ) -> Issue:
        """Create an issue with a fresh id and both timestamps set."""
        if not reporter_id:
            raise ValueError("reporter_id is required")

        now = self.clock()
        issue = Issue(
            id=self.ids.new_id("issue"),
            title=title,
            description=description,
            type=coerce(IssueType, type),
            status=coerce(IssueStatus, status),
            priority=coerce(Priority, priority),
            assignee_id=assignee_id,
            reporter_id=reporter_id,
            project_id=project_id,
            sprint_id=sprint_id,
            estimated_hours=estimated_hours,
            created_at=now,
            updated_at=now,
        )
        self._issues[issue.id] = issue
        if linked_bpmn_elements:
            self._set_links(issue.id, linked_bpmn_elements)

        logger.debug("Added issue %s (%s)", issue.id, title)
        created = self._hydrate(issue)
        self._emit("issue_added", issue=created)
        return created

    def update(self, issue_id: str, **changes) -> Optional[Issue]:
        """
        Apply a partial update. Unknown ids are a silent no-op (returns None).

        `id` and timestamps cannot be overwritten; unknown field names are
        ignored. `linked_bpmn_elements` replaces the issue's links.
        """
        issue = self._issues.get(issue_id)
        if issue is None:
            logger.debug("update: no issue %s", issue_id)
            return None

        applied = {}
        for name, value in changes.items():
            if name not in _UPDATABLE:
                continue
            if name in _ENUM_FIELDS:
                value = coerce(_ENUM_FIELDS[name], value)
            elif name == "reporter_id" and not value:
                raise ValueError("reporter_id is required")
            applied[name] = value

        removed = []
        links = applied.pop("linked_bpmn_elements", None)
        if links is not None:
            removed = self._set_links(issue_id, links)

        issue = replace(issue, **applied, updated_at=self.clock())
        self._issues[issue_id] = issue

        updated = self._hydrate(issue)
        self._emit("issue_updated", issue=updated, changes=sorted(changes), removed_links=removed)
        return updated

    def delete(self, issue_id: str) -> bool:
        """Delete an issue and every link row that references it."""
        if self._issues.pop(issue_id, None) is None:
            logger.debug("delete: no issue %s", issue_id)
            return False

        removed = self.links.remove_issue(issue_id)
        logger.info("Deleted issue %s (%d link(s) removed)", issue_id, len(removed))
        self._emit("issue_deleted", issue_id=issue_id, removed_links=removed)
        return True

    def get(self, issue_id: str) -> Optional[Issue]:
        issue = self._issues.get(issue_id)
        return self._hydrate(issue) if issue else None

    def list_all(self) -> List[Issue]:
        return self._hydrate_all(self._issues.values())

    # ── Queries ─────────────────────────────────────────────────────────────

    def get_by_project(self, project_id: str) -> List[Issue]:
        return self._hydrate_all(i for i in self._issues.values() if i.project_id == project_id)

    def get_by_sprint(self, sprint_id: str) -> List[Issue]:
        return self._hydrate_all(i for i in self._issues.values() if i.sprint_id == sprint_id)

    def get_backlog(self, project_id: str) -> List[Issue]:
        """Issues of a project that are not planned into any sprint."""
        return self._hydrate_all(
            i for i in self._issues.values()
            if i.project_id == project_id and not i.sprint_id
        )

    # ── Workflow shortcuts ──────────────────────────────────────────────────

    def update_status(self, issue_id: str, status) -> Optional[Issue]:
        return self.update(issue_id, status=status)

    def assign_to_sprint(self, issue_id: str, sprint_id: Optional[str]) -> Optional[Issue]:
        """Move an issue into a sprint, or back to the backlog with None."""
        return self.update(issue_id, sprint_id=sprint_id)

    # ── BPMN links ──────────────────────────────────────────────────────────

    def link_to_bpmn(self, issue_id: str, diagram_id: str, element_id: str) -> bool:
        """Link an issue to a diagram element. Existing links are left alone."""
        issue = self._issues.get(issue_id)
        if issue is None:
            return False
        if not self.links.add(issue_id, diagram_id, element_id):
            return False

        self._issues[issue_id] = replace(issue, updated_at=self.clock())
        logger.debug("Linked issue %s to %s/%s", issue_id, diagram_id, element_id)
        self._emit("issue_linked", issue_id=issue_id, diagram_id=diagram_id, element_id=element_id)
        return True

    def unlink_from_bpmn(self, issue_id: str, diagram_id: str, element_id: str) -> bool:
        issue = self._issues.get(issue_id)
        if issue is None:
            return False
        if not self.links.remove(issue_id, diagram_id, element_id):
            return False

        self._issues[issue_id] = replace(issue, updated_at=self.clock())
        logger.debug("Unlinked issue %s from %s/%s", issue_id, diagram_id, element_id)
        self._emit("issue_unlinked", issue_id=issue_id, diagram_id=diagram_id, element_id=element_id)
        return True

    def get_issues_by_bpmn_element(self, element_id: str, diagram_id: Optional[str] = None) -> List[Issue]:
        """Issues linked to an element id, in any diagram unless one is given."""
        wanted = set(self.links.issues_for_element(element_id, diagram_id))
        return self._hydrate_all(i for i in self._issues.values() if i.id in wanted)

    def get_issues_by_bpmn_diagram(self, diagram_id: str) -> List[Issue]:
        wanted = set(self.links.issues_for_diagram(diagram_id))
        return self._hydrate_all(i for i in self._issues.values() if i.id in wanted)

    def get_linked_elements(self, issue_id: str) -> List[LinkedBPMNElement]:
        return [
            LinkedBPMNElement(link.diagram_id, link.element_id)
            for link in self.links.elements_for_issue(issue_id)
        ]
