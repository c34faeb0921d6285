"""
Issue ↔ BPMN element link table.

One set of (issue_id, diagram_id, element_id) rows, read from both sides.
The issue repository and the BPMN repository share the same LinkTable, so an
issue's linked elements and an element's linked issues cannot disagree.
"""
from typing import Dict, List, NamedTuple, Optional


class Link(NamedTuple):
    issue_id: str
    diagram_id: str
    element_id: str


class LinkTable:
    """Insertion-ordered set of issue/element links."""

    def __init__(self):
        # dict as ordered set
        self._rows: Dict[Link, None] = {}

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, link) -> bool:
        return Link(*link) in self._rows

    def __iter__(self):
        return iter(list(self._rows))

    def add(self, issue_id: str, diagram_id: str, element_id: str) -> bool:
        """Insert a link. Returns False if it already existed."""
        link = Link(issue_id, diagram_id, element_id)
        if link in self._rows:
            return False
        self._rows[link] = None
        return True

    def remove(self, issue_id: str, diagram_id: str, element_id: str) -> bool:
        """Drop a link. Returns False if there was nothing to drop."""
        link = Link(issue_id, diagram_id, element_id)
        if link not in self._rows:
            return False
        del self._rows[link]
        return True

    def remove_issue(self, issue_id: str) -> List[Link]:
        """Drop every link of an issue and return what was removed."""
        removed = [link for link in self._rows if link.issue_id == issue_id]
        for link in removed:
            del self._rows[link]
        return removed

    def elements_for_issue(self, issue_id: str) -> List[Link]:
        return [link for link in self._rows if link.issue_id == issue_id]

    def issues_for_element(self, element_id: str, diagram_id: Optional[str] = None) -> List[str]:
        """Issue ids linked to an element, in link order, without duplicates."""
        seen: Dict[str, None] = {}
        for link in self._rows:
            if link.element_id != element_id:
                continue
            if diagram_id is not None and link.diagram_id != diagram_id:
                continue
            seen[link.issue_id] = None
        return list(seen)

    def issues_for_diagram(self, diagram_id: str) -> List[str]:
        seen: Dict[str, None] = {}
        for link in self._rows:
            if link.diagram_id == diagram_id:
                seen[link.issue_id] = None
        return list(seen)

    def has_links(self, element_id: str, diagram_id: Optional[str] = None) -> bool:
        return any(
            link.element_id == element_id
            and (diagram_id is None or link.diagram_id == diagram_id)
            for link in self._rows
        )
