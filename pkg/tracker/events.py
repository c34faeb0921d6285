"""
Event channel and status projection.

Repositories emit change events (issue_added, issue_updated, issue_deleted,
issue_linked, issue_unlinked, element_linked, ...). StatusProjector listens
and rebuilds BPMN element statuses from the current issue set.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .schema import BPMNElementStatus
from .status import compute_status

logger = logging.getLogger(__name__)


ISSUE_EVENTS = (
    "issue_added",
    "issue_updated",
    "issue_deleted",
    "issue_linked",
    "issue_unlinked",
)

ELEMENT_EVENTS = (
    "element_added",
    "element_updated",
    "element_linked",
    "element_unlinked",
)


class EventEmitter:
    """Minimal subscriber registry shared by the repositories."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> callbacks

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        callbacks = self.subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def _emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers."""
        for callback in list(self.subscribers.get(event_type, [])):
            try:
                callback(event_type=event_type, **kwargs)
            except Exception:
                logger.exception("Error in %s callback", event_type)


class StatusProjector(EventEmitter):
    """
    Keeps element status records in step with the issue collection.

    Every issue change triggers a full recompute over all linked elements.
    When an issue is deleted or unlinked, elements left with no links lose
    their status record first; recompute never creates records for them.
    """

    def __init__(self, issues, bpmn, clock: Optional[Callable[[], datetime]] = None):
        super().__init__()
        self.issues = issues
        self.bpmn = bpmn
        self.clock = clock or issues.clock
        for event_type in ISSUE_EVENTS:
            issues.subscribe(event_type, self._on_change)
        for event_type in ELEMENT_EVENTS:
            bpmn.subscribe(event_type, self._on_change)

    def _on_change(self, event_type: str, **kwargs) -> None:
        if kwargs.get("removed_links"):
            self._drop_orphaned(kwargs["removed_links"])
        elif event_type in ("issue_unlinked", "element_unlinked"):
            self._drop_orphaned([(kwargs.get("diagram_id"), kwargs.get("element_id"))])
        self.recompute()

    def _drop_orphaned(self, links) -> None:
        for link in links:
            element_id = link[-1]
            if not self.bpmn.has_linked_issues(element_id):
                if self.bpmn.remove_element_status(element_id):
                    logger.info("Cleared status of unlinked element %s", element_id)

    def recompute(self) -> List[BPMNElementStatus]:
        """Recompute and store the status of every element with linked issues."""
        issues_by_id = {issue.id: issue for issue in self.issues.list_all()}
        now = self.clock()
        written = []
        for element in self.bpmn.list_elements():
            if not element.linked_issue_ids:
                continue
            linked = [issues_by_id[i] for i in element.linked_issue_ids if i in issues_by_id]
            if not linked:
                continue
            status = compute_status(element.element_id, linked, now=now)
            self.bpmn.set_element_status(status)
            written.append(status)

        logger.info("Recomputed %d element status(es)", len(written))
        self._emit("status_changed", statuses=written)
        return written
