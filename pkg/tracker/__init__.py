# Tracker core: issues, sprints and BPMN diagrams with derived element status
#
# Components:
#   schema.py     - Data model (Issue, Sprint, Project, BPMNDiagram, BPMNElement, BPMNElementStatus)
#   ids.py        - Injectable identity generators
#   links.py      - Issue <-> BPMN element link table
#   issues.py     - Issue repository
#   bpmn.py       - Diagram/element repository and status records
#   status.py     - Element status aggregation
#   events.py     - Event channel and status projection
#   projects.py   - Project and sprint repositories
#   board.py      - Kanban columns and board stats
#   workspace.py  - Composition root
#   config.py     - YAML configuration
