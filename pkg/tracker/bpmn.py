"""
BPMN diagram/element repository (in-memory).

Holds diagrams, their linkable elements and the derived element status
records. Element ↔ issue links are stored in the shared LinkTable.

Cascades:
  delete_diagram → its elements → status records of those elements
  delete_element → the status record keyed by the element's external id

Link rows are not touched by either cascade; issues keep their
linked_bpmn_elements entries.
"""
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .events import EventEmitter
from .ids import IdGenerator, UUIDIds
from .links import LinkTable
from .schema import (
    BPMNDiagram,
    BPMNElement,
    BPMNElementStatus,
    ElementType,
    coerce,
    utcnow,
)

logger = logging.getLogger(__name__)

_DIAGRAM_FIELDS = {"name", "description", "project_id", "xml"}
_ELEMENT_FIELDS = {"diagram_id", "element_id", "type", "name", "linked_issue_ids"}


class BPMNRepository(EventEmitter):
    """In-memory store for diagrams, elements and element statuses."""

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
        self._diagrams: Dict[str, BPMNDiagram] = {}
        self._elements: Dict[str, BPMNElement] = {}
        self._statuses: Dict[str, BPMNElementStatus] = {}  # keyed by external element_id

    def _hydrate(self, element: BPMNElement) -> BPMNElement:
        linked = self.links.issues_for_element(element.element_id, element.diagram_id)
        return replace(element, linked_issue_ids=linked)

    def _replace_links(self, element: BPMNElement, issue_ids: Iterable[str]) -> List[tuple]:
        """Set the issues linked to one element; returns dropped (diagram, element) keys."""
        keep = list(dict.fromkeys(issue_ids))
        dropped = []
        for issue_id in self.links.issues_for_element(element.element_id, element.diagram_id):
            if issue_id not in keep:
                self.links.remove(issue_id, element.diagram_id, element.element_id)
                dropped.append((element.diagram_id, element.element_id))
        for issue_id in keep:
            self.links.add(issue_id, element.diagram_id, element.element_id)
        return dropped

    # ── Diagrams ────────────────────────────────────────────────────────────

    def add_diagram(self, name: str, project_id: str, description: str = "", xml: str = "") -> BPMNDiagram:
        now = self.clock()
        diagram = BPMNDiagram(
            id=self.ids.new_id("diagram"),
            name=name,
            description=description,
            project_id=project_id,
            xml=xml,
            created_at=now,
            updated_at=now,
        )
        self._diagrams[diagram.id] = diagram
        logger.debug("Added diagram %s (%s)", diagram.id, name)
        return replace(diagram)

    def update_diagram(self, diagram_id: str, **changes) -> Optional[BPMNDiagram]:
        diagram = self._diagrams.get(diagram_id)
        if diagram is None:
            logger.debug("update_diagram: no diagram %s", diagram_id)
            return None
        applied = {k: v for k, v in changes.items() if k in _DIAGRAM_FIELDS}
        diagram = replace(diagram, **applied, updated_at=self.clock())
        self._diagrams[diagram_id] = diagram
        return replace(diagram)

    def delete_diagram(self, diagram_id: str) -> bool:
        """Delete a diagram, its elements and their status records."""
        existed = self._diagrams.pop(diagram_id, None) is not None

        owned = [el for el in self._elements.values() if el.diagram_id == diagram_id]
        for element in owned:
            del self._elements[element.id]
        for element in owned:
            self._statuses.pop(element.element_id, None)

        if existed or owned:
            logger.info("Deleted diagram %s (%d element(s))", diagram_id, len(owned))
        return existed

    def get_diagram(self, diagram_id: str) -> Optional[BPMNDiagram]:
        diagram = self._diagrams.get(diagram_id)
        return replace(diagram) if diagram else None

    def get_diagrams_by_project(self, project_id: str) -> List[BPMNDiagram]:
        return [replace(d) for d in self._diagrams.values() if d.project_id == project_id]

    def list_diagrams(self) -> List[BPMNDiagram]:
        return [replace(d) for d in self._diagrams.values()]

    # ── Elements ────────────────────────────────────────────────────────────

    def add_element(
        self,
        diagram_id: str,
        element_id: str,
        type=ElementType.TASK,
        name: str = "",
        linked_issue_ids: Optional[Iterable[str]] = None,
    ) -> BPMNElement:
        element = BPMNElement(
            id=self.ids.new_id("element"),
            diagram_id=diagram_id,
            element_id=element_id,
            type=coerce(ElementType, type),
            name=name,
        )
        self._elements[element.id] = element
        if linked_issue_ids:
            self._replace_links(element, linked_issue_ids)

        logger.debug("Added element %s (%s) to diagram %s", element.id, element_id, diagram_id)
        created = self._hydrate(element)
        self._emit("element_added", element=created)
        return created

    def update_element(self, id: str, **changes) -> Optional[BPMNElement]:
        """
        Partial update by repository id.

        Moving an element to another external id or diagram carries its links
        along and drops the status record of the old external id.
        """
        element = self._elements.get(id)
        if element is None:
            logger.debug("update_element: no element %s", id)
            return None

        applied = {k: v for k, v in changes.items() if k in _ELEMENT_FIELDS}
        if "type" in applied:
            applied["type"] = coerce(ElementType, applied["type"])
        issue_ids = applied.pop("linked_issue_ids", None)

        moved = replace(element, **applied)
        dropped = []
        if (moved.diagram_id, moved.element_id) != (element.diagram_id, element.element_id):
            carried = self.links.issues_for_element(element.element_id, element.diagram_id)
            for issue_id in carried:
                self.links.remove(issue_id, element.diagram_id, element.element_id)
                self.links.add(issue_id, moved.diagram_id, moved.element_id)
            if moved.element_id != element.element_id:
                self._statuses.pop(element.element_id, None)
        self._elements[id] = moved

        if issue_ids is not None:
            dropped = self._replace_links(moved, issue_ids)

        updated = self._hydrate(moved)
        self._emit("element_updated", element=updated, removed_links=dropped)
        return updated

    def delete_element(self, id: str) -> bool:
        """Delete an element by repository id and drop its status record."""
        element = self._elements.pop(id, None)
        if element is None:
            logger.debug("delete_element: no element %s", id)
            return False
        # status records are keyed by the external id, not the repository id
        self._statuses.pop(element.element_id, None)
        logger.info("Deleted element %s (%s)", id, element.element_id)
        return True

    def get_element(self, id: str) -> Optional[BPMNElement]:
        element = self._elements.get(id)
        return self._hydrate(element) if element else None

    def get_elements_by_external_id(self, element_id: str) -> List[BPMNElement]:
        return [self._hydrate(el) for el in self._elements.values() if el.element_id == element_id]

    def get_elements_by_diagram(self, diagram_id: str) -> List[BPMNElement]:
        return [self._hydrate(el) for el in self._elements.values() if el.diagram_id == diagram_id]

    def get_elements_with_linked_issues(self, diagram_id: str) -> List[BPMNElement]:
        return [el for el in self.get_elements_by_diagram(diagram_id) if el.linked_issue_ids]

    def list_elements(self) -> List[BPMNElement]:
        return [self._hydrate(el) for el in self._elements.values()]

    # ── Element side of issue links ─────────────────────────────────────────

    def _targets(self, element_id: str, diagram_id: Optional[str]) -> List[BPMNElement]:
        return [
            el for el in self._elements.values()
            if el.element_id == element_id and (diagram_id is None or el.diagram_id == diagram_id)
        ]

    def link_issue(self, element_id: str, issue_id: str, diagram_id: Optional[str] = None) -> bool:
        """
        Link an issue to every element with this external id (or only the one
        in `diagram_id`). Returns True if any new link was recorded.
        """
        added = False
        for element in self._targets(element_id, diagram_id):
            if self.links.add(issue_id, element.diagram_id, element.element_id):
                added = True
                self._emit(
                    "element_linked",
                    issue_id=issue_id,
                    diagram_id=element.diagram_id,
                    element_id=element.element_id,
                )
        return added

    def unlink_issue(self, element_id: str, issue_id: str, diagram_id: Optional[str] = None) -> bool:
        removed = False
        for element in self._targets(element_id, diagram_id):
            if self.links.remove(issue_id, element.diagram_id, element.element_id):
                removed = True
                self._emit(
                    "element_unlinked",
                    issue_id=issue_id,
                    diagram_id=element.diagram_id,
                    element_id=element.element_id,
                )
        return removed

    def has_linked_issues(self, element_id: str) -> bool:
        """True if an existing element with this external id has linked issues."""
        return any(
            self.links.has_links(el.element_id, el.diagram_id)
            for el in self._elements.values()
            if el.element_id == element_id
        )

    # ── Status records ──────────────────────────────────────────────────────

    def get_element_status(self, element_id: str) -> Optional[BPMNElementStatus]:
        status = self._statuses.get(element_id)
        return replace(status) if status else None

    def set_element_status(self, status: BPMNElementStatus) -> None:
        """Insert or replace the status record for status.element_id."""
        self._statuses[status.element_id] = replace(status)

    def remove_element_status(self, element_id: str) -> bool:
        return self._statuses.pop(element_id, None) is not None

    def list_element_statuses(self, diagram_id: Optional[str] = None) -> List[BPMNElementStatus]:
        if diagram_id is None:
            return [replace(s) for s in self._statuses.values()]
        keys = {el.element_id for el in self._elements.values() if el.diagram_id == diagram_id}
        return [replace(s) for key, s in self._statuses.items() if key in keys]
