"""
Board views: Kanban columns for a sprint and board statistics.
"""
from typing import Any, Dict, Iterable, List, Optional

from .schema import Issue, IssueStatus

COLUMN_ORDER = (IssueStatus.TO_DO, IssueStatus.IN_PROGRESS, IssueStatus.DONE)


def kanban_columns(issues: Iterable[Issue]) -> Dict[str, List[Issue]]:
    """Group issues into To Do / In Progress / Done columns."""
    columns: Dict[str, List[Issue]] = {status.value: [] for status in COLUMN_ORDER}
    for issue in issues:
        columns[issue.status.value].append(issue)
    return columns


def board_stats(issues: Iterable[Issue]) -> Dict[str, Any]:
    stats = {
        "total": 0,
        "by_status": {status.value: 0 for status in COLUMN_ORDER},
        "by_type": {},
        "by_priority": {},
        "estimated_hours": 0.0,
    }
    for issue in issues:
        stats["total"] += 1
        stats["by_status"][issue.status.value] += 1
        stats["by_type"][issue.type.value] = stats["by_type"].get(issue.type.value, 0) + 1
        stats["by_priority"][issue.priority.value] = stats["by_priority"].get(issue.priority.value, 0) + 1
        if issue.estimated_hours:
            stats["estimated_hours"] += issue.estimated_hours
    return stats


def sprint_board(workspace, project_id: str, sprint_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Board of one sprint: the given one, or the project's active sprint.

    Without a sprint the columns are empty and `sprint` is None.
    """
    sprint = workspace.sprints.get(sprint_id) if sprint_id else workspace.sprints.get_active(project_id)
    if sprint is not None and sprint.project_id != project_id:
        sprint = None

    issues = workspace.issues.get_by_sprint(sprint.id) if sprint else []
    columns = kanban_columns(issues)
    return {
        "sprint": sprint.to_dict() if sprint else None,
        "columns": {name: [i.to_dict() for i in col] for name, col in columns.items()},
        "stats": board_stats(issues),
    }
