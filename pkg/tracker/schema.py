"""
Tracker data model: issues, sprints, projects and BPMN diagrams.

Issue lifecycle:
  To Do → In Progress → Done

BPMN element statuses are never authored directly. They are a projection of
the linked issues (see status.py) and are rebuilt whenever issues change.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, datetime) else value


def _parse_dt(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    if not value:
        return default
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def coerce(enum_cls, value):
    """Accept an enum member or its string form (API payloads send strings)."""
    if isinstance(value, enum_cls):
        return value
    return enum_cls.from_str(value)


class IssueType(Enum):
    """Kind of work an issue tracks."""
    TASK = "TASK"
    BUG = "BUG"
    USER_STORY = "USER_STORY"

    @classmethod
    def from_str(cls, value: str) -> "IssueType":
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.TASK


class IssueStatus(Enum):
    """Kanban column an issue sits in."""
    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"

    @classmethod
    def from_str(cls, value: str) -> "IssueStatus":
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.TO_DO


class Priority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @classmethod
    def from_str(cls, value: str) -> "Priority":
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.MEDIUM


class SprintStatus(Enum):
    PLANNING = "PLANNING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"

    @classmethod
    def from_str(cls, value: str) -> "SprintStatus":
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.PLANNING


class ElementType(Enum):
    """BPMN element kinds that can carry issue links."""
    TASK = "task"
    GATEWAY = "gateway"
    EVENT = "event"
    SUBPROCESS = "subprocess"

    @classmethod
    def from_str(cls, value: str) -> "ElementType":
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.TASK


class ElementState(Enum):
    """Derived state of a BPMN element."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"      # Reserved: no aggregation rule produces it yet

    @classmethod
    def from_str(cls, value: str) -> "ElementState":
        try:
            return cls[value.upper()]
        except (KeyError, AttributeError):
            return cls.NOT_STARTED


@dataclass(frozen=True)
class LinkedBPMNElement:
    """One (diagram, element) pair an issue is linked to."""
    diagram_id: str
    element_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"diagram_id": self.diagram_id, "element_id": self.element_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkedBPMNElement":
        return cls(diagram_id=data["diagram_id"], element_id=data["element_id"])


@dataclass
class Issue:
    """A trackable unit of work inside a project."""

    # Identifiers
    id: str
    project_id: str
    reporter_id: str

    # Content
    title: str
    description: str = ""
    type: IssueType = IssueType.TASK

    # Workflow
    status: IssueStatus = IssueStatus.TO_DO
    priority: Priority = Priority.MEDIUM
    assignee_id: Optional[str] = None
    sprint_id: Optional[str] = None      # None = backlog
    estimated_hours: Optional[float] = None

    # Links (hydrated from the link table by the repository)
    linked_bpmn_elements: List[LinkedBPMNElement] = field(default_factory=list)

    # Metadata
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "status": self.status.value,
            "priority": self.priority.value,
            "assignee_id": self.assignee_id,
            "reporter_id": self.reporter_id,
            "project_id": self.project_id,
            "sprint_id": self.sprint_id,
            "estimated_hours": self.estimated_hours,
            "linked_bpmn_elements": [link.to_dict() for link in self.linked_bpmn_elements],
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Issue":
        """Deserialize from dict. Unknown enum strings fall back to defaults."""
        links = [LinkedBPMNElement.from_dict(d) for d in data.get("linked_bpmn_elements") or []]
        return cls(
            id=data.get("id", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            type=IssueType.from_str(data.get("type", "TASK")),
            status=IssueStatus.from_str(data.get("status", "TO_DO")),
            priority=Priority.from_str(data.get("priority", "MEDIUM")),
            assignee_id=data.get("assignee_id"),
            reporter_id=data.get("reporter_id", ""),
            project_id=data.get("project_id", ""),
            sprint_id=data.get("sprint_id"),
            estimated_hours=data.get("estimated_hours"),
            linked_bpmn_elements=links,
            created_at=_parse_dt(data.get("created_at"), utcnow()),
            updated_at=_parse_dt(data.get("updated_at"), utcnow()),
        )


@dataclass
class Sprint:
    """Time-boxed grouping of issues within a project."""
    id: str
    name: str
    project_id: str
    start_date: datetime
    end_date: datetime
    description: str = ""
    issue_ids: List[str] = field(default_factory=list)
    status: SprintStatus = SprintStatus.PLANNING
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "project_id": self.project_id,
            "issue_ids": list(self.issue_ids),
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sprint":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            start_date=_parse_dt(data.get("start_date"), utcnow()),
            end_date=_parse_dt(data.get("end_date"), utcnow()),
            project_id=data.get("project_id", ""),
            issue_ids=list(data.get("issue_ids") or []),
            status=SprintStatus.from_str(data.get("status", "PLANNING")),
            created_at=_parse_dt(data.get("created_at"), utcnow()),
            updated_at=_parse_dt(data.get("updated_at"), utcnow()),
        )


@dataclass
class Project:
    id: str
    name: str
    owner_id: str
    description: str = ""
    member_ids: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "owner_id": self.owner_id,
            "member_ids": list(self.member_ids),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            owner_id=data.get("owner_id", ""),
            member_ids=list(data.get("member_ids") or []),
            created_at=_parse_dt(data.get("created_at"), utcnow()),
            updated_at=_parse_dt(data.get("updated_at"), utcnow()),
        )


@dataclass
class BPMNDiagram:
    """A process model. The markup is opaque and stored verbatim."""
    id: str
    name: str
    project_id: str
    description: str = ""
    xml: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "project_id": self.project_id,
            "xml": self.xml,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BPMNDiagram":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            project_id=data.get("project_id", ""),
            xml=data.get("xml", ""),
            created_at=_parse_dt(data.get("created_at"), utcnow()),
            updated_at=_parse_dt(data.get("updated_at"), utcnow()),
        )


@dataclass
class BPMNElement:
    """
    A diagram element that issues can be linked to.

    `id` is the repository identity; `element_id` is the id the element has
    inside the diagram markup. Status records are keyed by `element_id`.
    """
    id: str
    diagram_id: str
    element_id: str
    type: ElementType = ElementType.TASK
    name: str = ""
    linked_issue_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "diagram_id": self.diagram_id,
            "element_id": self.element_id,
            "type": self.type.value,
            "name": self.name,
            "linked_issue_ids": list(self.linked_issue_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BPMNElement":
        return cls(
            id=data.get("id", ""),
            diagram_id=data.get("diagram_id", ""),
            element_id=data.get("element_id", ""),
            type=ElementType.from_str(data.get("type", "task")),
            name=data.get("name", ""),
            linked_issue_ids=list(data.get("linked_issue_ids") or []),
        )


@dataclass
class BPMNElementStatus:
    """Derived completion state of one element."""
    element_id: str
    status: ElementState
    progress: int
    last_updated: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be within [0, 100], got {self.progress}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "element_id": self.element_id,
            "status": self.status.value,
            "progress": self.progress,
            "last_updated": _iso(self.last_updated),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BPMNElementStatus":
        return cls(
            element_id=data.get("element_id", ""),
            status=ElementState.from_str(data.get("status", "not_started")),
            progress=int(data.get("progress", 0)),
            last_updated=_parse_dt(data.get("last_updated"), utcnow()),
        )
