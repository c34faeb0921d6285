"""
Project and sprint repositories (in-memory).
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .ids import IdGenerator, UUIDIds
from .schema import Project, Sprint, SprintStatus, coerce, utcnow

logger = logging.getLogger(__name__)

_PROJECT_FIELDS = {"name", "description", "owner_id", "member_ids"}
_SPRINT_FIELDS = {"name", "description", "start_date", "end_date", "project_id", "issue_ids", "status"}


class ProjectRepository:
    """Projects plus the "current project" selection of a board session."""

    def __init__(self, ids: Optional[IdGenerator] = None, clock: Callable[[], datetime] = utcnow):
        self.ids = ids or UUIDIds()
        self.clock = clock
        self._projects: Dict[str, Project] = {}
        self._current_id: Optional[str] = None

    def add(self, name: str, owner_id: str, description: str = "",
            member_ids: Optional[Iterable[str]] = None) -> Project:
        now = self.clock()
        project = Project(
            id=self.ids.new_id("project"),
            name=name,
            description=description,
            owner_id=owner_id,
            member_ids=list(member_ids or []),
            created_at=now,
            updated_at=now,
        )
        self._projects[project.id] = project
        logger.debug("Added project %s (%s)", project.id, name)
        return replace(project, member_ids=list(project.member_ids))

    def update(self, project_id: str, **changes) -> Optional[Project]:
        project = self._projects.get(project_id)
        if project is None:
            return None
        applied = {k: v for k, v in changes.items() if k in _PROJECT_FIELDS}
        if "member_ids" in applied:
            applied["member_ids"] = list(applied["member_ids"])
        project = replace(project, **applied, updated_at=self.clock())
        self._projects[project_id] = project
        return self.get(project_id)

    def delete(self, project_id: str) -> bool:
        if self._projects.pop(project_id, None) is None:
            return False
        if self._current_id == project_id:
            self._current_id = None
        return True

    def get(self, project_id: str) -> Optional[Project]:
        project = self._projects.get(project_id)
        if project is None:
            return None
        return replace(project, member_ids=list(project.member_ids))

    def list_all(self) -> List[Project]:
        return [self.get(pid) for pid in self._projects]

    def set_current(self, project_id: Optional[str]) -> Optional[Project]:
        """Select the project the board is showing. Unknown ids clear it."""
        self._current_id = project_id if project_id in self._projects else None
        return self.current()

    def current(self) -> Optional[Project]:
        return self.get(self._current_id) if self._current_id else None


class SprintRepository:
    """
    Sprints of all projects.

    A project has at most one ACTIVE sprint; start() refuses to open a
    second one.
    """

    def __init__(self, ids: Optional[IdGenerator] = None, clock: Callable[[], datetime] = utcnow):
        self.ids = ids or UUIDIds()
        self.clock = clock
        self._sprints: Dict[str, Sprint] = {}

    def add(self, name: str, project_id: str, start_date: datetime, end_date: datetime,
            description: str = "", status=SprintStatus.PLANNING,
            issue_ids: Optional[Iterable[str]] = None) -> Sprint:
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")
        now = self.clock()
        sprint = Sprint(
            id=self.ids.new_id("sprint"),
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            project_id=project_id,
            issue_ids=list(dict.fromkeys(issue_ids or [])),
            status=coerce(SprintStatus, status),
            created_at=now,
            updated_at=now,
        )
        self._sprints[sprint.id] = sprint
        logger.debug("Added sprint %s (%s) to project %s", sprint.id, name, project_id)
        return self.get(sprint.id)

    def update(self, sprint_id: str, **changes) -> Optional[Sprint]:
        sprint = self._sprints.get(sprint_id)
        if sprint is None:
            return None
        applied = {k: v for k, v in changes.items() if k in _SPRINT_FIELDS}
        if "status" in applied:
            applied["status"] = coerce(SprintStatus, applied["status"])
        if "issue_ids" in applied:
            applied["issue_ids"] = list(dict.fromkeys(applied["issue_ids"]))
        self._sprints[sprint_id] = replace(sprint, **applied, updated_at=self.clock())
        return self.get(sprint_id)

    def delete(self, sprint_id: str) -> bool:
        return self._sprints.pop(sprint_id, None) is not None

    def get(self, sprint_id: str) -> Optional[Sprint]:
        sprint = self._sprints.get(sprint_id)
        if sprint is None:
            return None
        return replace(sprint, issue_ids=list(sprint.issue_ids))

    def get_by_project(self, project_id: str) -> List[Sprint]:
        return [self.get(s.id) for s in self._sprints.values() if s.project_id == project_id]

    def get_active(self, project_id: str) -> Optional[Sprint]:
        for sprint in self._sprints.values():
            if sprint.project_id == project_id and sprint.status == SprintStatus.ACTIVE:
                return self.get(sprint.id)
        return None

    def add_issue(self, sprint_id: str, issue_id: str) -> Optional[Sprint]:
        sprint = self._sprints.get(sprint_id)
        if sprint is None:
            return None
        if issue_id in sprint.issue_ids:
            return self.get(sprint_id)
        return self.update(sprint_id, issue_ids=sprint.issue_ids + [issue_id])

    def remove_issue(self, sprint_id: str, issue_id: str) -> Optional[Sprint]:
        sprint = self._sprints.get(sprint_id)
        if sprint is None:
            return None
        return self.update(sprint_id, issue_ids=[i for i in sprint.issue_ids if i != issue_id])

    def can_start(self, project_id: str) -> bool:
        return self.get_active(project_id) is None

    def start(self, sprint_id: str) -> Optional[Sprint]:
        """PLANNING → ACTIVE, only if the project has no active sprint."""
        sprint = self._sprints.get(sprint_id)
        if sprint is None or sprint.status != SprintStatus.PLANNING:
            return None
        if not self.can_start(sprint.project_id):
            logger.info("Sprint %s not started: project %s already has an active sprint",
                        sprint_id, sprint.project_id)
            return None
        return self.update(sprint_id, status=SprintStatus.ACTIVE)

    def complete(self, sprint_id: str) -> Optional[Sprint]:
        """ACTIVE → COMPLETED."""
        sprint = self._sprints.get(sprint_id)
        if sprint is None or sprint.status != SprintStatus.ACTIVE:
            return None
        return self.update(sprint_id, status=SprintStatus.COMPLETED)
