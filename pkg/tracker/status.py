"""
Element status aggregation.

Maps the issues linked to one BPMN element onto a single element state:

  all Done            → completed, 100
  any In Progress     → in_progress, share of Done issues
  otherwise           → not_started, 0

`blocked` has no rule yet and is never produced here.
"""
from datetime import datetime
from typing import Dict, Optional, Sequence

from .schema import BPMNElementStatus, ElementState, Issue, IssueStatus, utcnow


# stroke/fill pairs the diagram renderer paints elements with
STATUS_COLORS: Dict[ElementState, Dict[str, str]] = {
    ElementState.COMPLETED: {"stroke": "#4caf50", "fill": "#e8f5e9"},
    ElementState.IN_PROGRESS: {"stroke": "#ff9800", "fill": "#fff8e1"},
    ElementState.NOT_STARTED: {"stroke": "#9e9e9e", "fill": "#f5f5f5"},
    ElementState.BLOCKED: {"stroke": "#f44336", "fill": "#ffebee"},
}


def percent(part: int, total: int) -> int:
    """Integer percentage, rounding halves up."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


def compute_status(
    element_id: str,
    linked_issues: Sequence[Issue],
    now: Optional[datetime] = None,
) -> BPMNElementStatus:
    """
    Derive the status of `element_id` from its linked issues.

    Raises ValueError for an empty issue list: unlinked elements have no
    status record at all.
    """
    if not linked_issues:
        raise ValueError(f"Element {element_id} has no linked issues")

    total = len(linked_issues)
    done = sum(1 for issue in linked_issues if issue.status == IssueStatus.DONE)
    in_progress = sum(1 for issue in linked_issues if issue.status == IssueStatus.IN_PROGRESS)

    if done == total:
        state, progress = ElementState.COMPLETED, 100
    elif in_progress > 0:
        state, progress = ElementState.IN_PROGRESS, percent(done, total)
    else:
        state, progress = ElementState.NOT_STARTED, 0

    return BPMNElementStatus(
        element_id=element_id,
        status=state,
        progress=progress,
        last_updated=now or utcnow(),
    )


def element_colors(state: ElementState) -> Dict[str, str]:
    return dict(STATUS_COLORS[state])
