#!/usr/bin/env python3
"""
Tracker Server
--------------
JSON API over an in-memory tracker Workspace: projects, sprint boards,
backlog, issues, BPMN diagrams and their derived element statuses.

Usage:
    python tracker_server.py --port 3000
    python tracker_server.py --config tracker.yaml

API:
    GET  /health
    GET  /api/projects                    → { projects }
    POST /api/projects                    → { project }
    GET  /api/projects/<id>/board         → { sprint, columns, stats }   (?sprint=<id>)
    GET  /api/projects/<id>/backlog       → { issues, count }
    POST /api/issues                      → { issue }
    GET|PUT|DELETE /api/issues/<id>
    POST /api/issues/<id>/status          → body { status }
    POST|DELETE /api/issues/<id>/links    → body { diagram_id, element_id }
    POST /api/diagrams                    → { diagram }
    GET  /api/diagrams/<id>               → { diagram, elements, issues }
    POST /api/diagrams/<id>/elements      → { element }
    GET  /api/diagrams/<id>/statuses      → { statuses }
    GET  /api/stats                       → board statistics over all issues
"""

import logging
import sys

from flask import Flask, jsonify, request, current_app

from pkg.tracker.board import board_stats, sprint_board
from pkg.tracker.config import TrackerConfig
from pkg.tracker.schema import IssueStatus, IssueType, Priority
from pkg.tracker.status import element_colors
from pkg.tracker.workspace import Workspace

logger = logging.getLogger("tracker_server")

_ISSUE_ENUMS = {"status": IssueStatus, "type": IssueType, "priority": Priority}


def _workspace() -> Workspace:
    return current_app.config["WORKSPACE"]


def _body() -> dict:
    return request.get_json(force=True, silent=True) or {}


def _not_found(what: str):
    return jsonify({"error": f"{what} not found"}), 404


def create_app(workspace: Workspace = None) -> Flask:
    app = Flask(__name__)
    app.config["WORKSPACE"] = workspace or Workspace()

    @app.errorhandler(ValueError)
    def bad_request(e):
        return jsonify({"error": str(e)}), 400

    # ── Projects & boards ───────────────────────────────────────────────────

    @app.route("/api/projects", methods=["GET"])
    def api_projects():
        return jsonify({"projects": [p.to_dict() for p in _workspace().projects.list_all()]})

    @app.route("/api/projects", methods=["POST"])
    def api_create_project():
        data = _body()
        name = data.get("name", "").strip()
        if not name:
            return jsonify({"error": "name is required"}), 400
        if not data.get("owner_id"):
            return jsonify({"error": "owner_id is required"}), 400
        project = _workspace().projects.add(
            name=name,
            owner_id=data["owner_id"],
            description=data.get("description", ""),
            member_ids=data.get("member_ids", []),
        )
        return jsonify({"project": project.to_dict()}), 201

    @app.route("/api/projects/<project_id>/board")
    def api_board(project_id):
        ws = _workspace()
        if ws.projects.get(project_id) is None:
            return _not_found("Project")
        return jsonify(sprint_board(ws, project_id, request.args.get("sprint")))

    @app.route("/api/projects/<project_id>/backlog")
    def api_backlog(project_id):
        issues = _workspace().issues.get_backlog(project_id)
        return jsonify({"issues": [i.to_dict() for i in issues], "count": len(issues)})

    # ── Issues ──────────────────────────────────────────────────────────────

    @app.route("/api/issues", methods=["POST"])
    def api_create_issue():
        data = _body()
        title = data.get("title", "").strip()
        if not title:
            return jsonify({"error": "title is required"}), 400
        if not data.get("project_id"):
            return jsonify({"error": "project_id is required"}), 400

        issue = _workspace().issues.add(
            title=title,
            project_id=data["project_id"],
            reporter_id=data.get("reporter_id", ""),
            description=data.get("description", ""),
            type=data.get("type", "TASK"),
            status=data.get("status", "TO_DO"),
            priority=data.get("priority", "MEDIUM"),
            assignee_id=data.get("assignee_id"),
            estimated_hours=data.get("estimated_hours"),
        )
        if data.get("sprint_id"):
            issue = _workspace().assign_to_sprint(issue.id, data["sprint_id"]) or issue
        return jsonify({"issue": issue.to_dict()}), 201

    @app.route("/api/issues/<issue_id>", methods=["GET"])
    def api_get_issue(issue_id):
        issue = _workspace().issues.get(issue_id)
        if issue is None:
            return _not_found("Issue")
        return jsonify({"issue": issue.to_dict()})

    @app.route("/api/issues/<issue_id>", methods=["PUT"])
    def api_update_issue(issue_id):
        ws = _workspace()
        data = _body()
        if ws.issues.get(issue_id) is None:
            return _not_found("Issue")
        for name, enum_cls in _ISSUE_ENUMS.items():
            if name not in data:
                continue
            value = str(data[name]).strip().upper()
            if value not in enum_cls.__members__:
                return jsonify({"error": f"Invalid {name}: {data[name]}"}), 400
            data[name] = enum_cls[value]
        if "sprint_id" in data:
            ws.assign_to_sprint(issue_id, data.pop("sprint_id"))
        issue = ws.issues.update(issue_id, **data)
        return jsonify({"issue": issue.to_dict()})

    @app.route("/api/issues/<issue_id>", methods=["DELETE"])
    def api_delete_issue(issue_id):
        if not _workspace().delete_issue(issue_id):
            return _not_found("Issue")
        return jsonify({"deleted": issue_id})

    @app.route("/api/issues/<issue_id>/status", methods=["POST"])
    def api_issue_status(issue_id):
        status = _body().get("status", "").strip().upper()
        if status not in IssueStatus.__members__:
            return jsonify({"error": f"Invalid status: {status}"}), 400
        issue = _workspace().issues.update_status(issue_id, IssueStatus[status])
        if issue is None:
            return _not_found("Issue")
        return jsonify({"issue": issue.to_dict()})

    @app.route("/api/issues/<issue_id>/links", methods=["POST", "DELETE"])
    def api_issue_links(issue_id):
        ws = _workspace()
        data = _body()
        diagram_id = data.get("diagram_id")
        element_id = data.get("element_id")
        if not diagram_id or not element_id:
            return jsonify({"error": "diagram_id and element_id are required"}), 400
        if ws.issues.get(issue_id) is None:
            return _not_found("Issue")

        if request.method == "POST":
            changed = ws.link(issue_id, diagram_id, element_id)
        else:
            changed = ws.unlink(issue_id, diagram_id, element_id)
        issue = ws.issues.get(issue_id)
        return jsonify({"issue": issue.to_dict(), "changed": changed})

    # ── Diagrams ────────────────────────────────────────────────────────────

    @app.route("/api/diagrams", methods=["POST"])
    def api_create_diagram():
        data = _body()
        name = data.get("name", "").strip()
        if not name or not data.get("project_id"):
            return jsonify({"error": "name and project_id are required"}), 400
        diagram = _workspace().bpmn.add_diagram(
            name=name,
            project_id=data["project_id"],
            description=data.get("description", ""),
            xml=data.get("xml", ""),
        )
        return jsonify({"diagram": diagram.to_dict()}), 201

    @app.route("/api/diagrams/<diagram_id>")
    def api_diagram(diagram_id):
        overview = _workspace().diagram_overview(diagram_id)
        if overview is None:
            return _not_found("Diagram")
        return jsonify(overview)

    @app.route("/api/diagrams/<diagram_id>/elements", methods=["POST"])
    def api_create_element(diagram_id):
        ws = _workspace()
        if ws.bpmn.get_diagram(diagram_id) is None:
            return _not_found("Diagram")
        data = _body()
        if not data.get("element_id"):
            return jsonify({"error": "element_id is required"}), 400
        element = ws.bpmn.add_element(
            diagram_id=diagram_id,
            element_id=data["element_id"],
            type=data.get("type", "task"),
            name=data.get("name", ""),
            linked_issue_ids=data.get("linked_issue_ids", []),
        )
        return jsonify({"element": element.to_dict()}), 201

    @app.route("/api/diagrams/<diagram_id>/statuses")
    def api_diagram_statuses(diagram_id):
        ws = _workspace()
        if ws.bpmn.get_diagram(diagram_id) is None:
            return _not_found("Diagram")
        statuses = []
        for status in ws.bpmn.list_element_statuses(diagram_id):
            entry = status.to_dict()
            entry["colors"] = element_colors(status.status)
            statuses.append(entry)
        return jsonify({"statuses": statuses})

    @app.route("/api/stats")
    def api_stats():
        return jsonify(board_stats(_workspace().issues.list_all()))

    @app.route("/health")
    def health():
        ws = _workspace()
        return jsonify({
            "status": "ok",
            "issues": len(ws.issues.list_all()),
            "diagrams": len(ws.bpmn.list_diagrams()),
            "links": len(ws.links),
        })

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Tracker Server")
    parser.add_argument("--config", help="Path to a YAML config file (overrides TRACKER_CONFIG)")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    args = parser.parse_args(argv)

    cfg = TrackerConfig.load(args.config)
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format=cfg.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    host = args.host or cfg.host
    port = args.port or cfg.port
    app = create_app(Workspace.from_config(cfg))
    logger.info("Starting tracker server on http://%s:%d", host, port)

    # Workspace state is not locked; serve one request at a time
    app.run(host=host, port=port, debug=False, threaded=False)


if __name__ == "__main__":
    main()
