# backend/app.py
import logging
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from config import Settings
from errors import NoFieldsProvided, NotFound, StorageReadError, StorageWriteError
from tasks import TaskService

logger = logging.getLogger(__name__)

_VERBS = {"GET": "fetch", "POST": "create", "PUT": "update", "PATCH": "update", "DELETE": "delete"}


# ---- helpers ----
def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _settings() -> Settings:
    return current_app.config["SETTINGS"]


def _service() -> TaskService:
    # boto3 のリソースは最初のリクエストで作る（import 時にリージョン不要にするため）
    svc = current_app.extensions.get("task_service")
    if svc is None:
        svc = TaskService.from_settings(_settings())
        current_app.extensions["task_service"] = svc
    return svc


def current_user_id() -> str:
    """
    handler.py が JWT の sub を X-User-Sub に入れて渡してくる。
    無い場合は設定の default_owner（既定 'anonymous'）へフォールバック。
    """
    return request.headers.get("X-User-Sub") or _settings().default_owner


def _body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _opt_str(v) -> Optional[str]:
    return None if v is None else str(v)


def create_app(service: Optional[TaskService] = None, settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    if service is not None:
        app.extensions["task_service"] = service

    CORS(
        app,
        resources={r"/*": {"origins": settings.allowed_origins}},
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # ---------- Errors ----------
    @app.errorhandler(NotFound)
    def not_found(e):
        return jsonify({"error": "Task not found"}), 404

    @app.errorhandler(NoFieldsProvided)
    def no_fields(e):
        return jsonify({"error": "No valid fields provided for update"}), 400

    @app.errorhandler(StorageReadError)
    @app.errorhandler(StorageWriteError)
    def storage_error(e):
        logger.exception("storage error on %s %s", request.method, request.path)
        verb = _VERBS.get(request.method, "process")
        noun = "tasks" if request.path.rstrip("/") == "/tasks" and verb == "fetch" else "task"
        return jsonify({"error": f"Could not {verb} {noun}"}), 500

    # ---------- Health ----------
    @app.get("/health")
    def health():
        return jsonify({"ok": True, "time": now_iso()})

    # ---------- List ----------
    @app.get("/tasks")
    def list_tasks():
        tasks = _service().list(current_user_id())
        return jsonify([t.to_dict() for t in tasks])

    # ---------- Create ----------
    @app.post("/tasks")
    def create_task():
        description = _body().get("description")
        if not isinstance(description, str) or not description.strip():
            return jsonify({"error": "description is required"}), 400
        task = _service().create(current_user_id(), description)
        return jsonify(task.to_dict()), 201

    # ---------- Get ----------
    @app.get("/tasks/<task_id>")
    def get_task(task_id):
        task = _service().get(current_user_id(), task_id)
        return jsonify(task.to_dict())

    # ---------- Update ----------
    @app.route("/tasks/<task_id>", methods=["PUT", "PATCH"])
    def update_task(task_id):
        body = _body()
        _service().update(
            current_user_id(),
            task_id,
            description=_opt_str(body.get("description")),
            status=_opt_str(body.get("status")),
        )
        return jsonify({"message": "Task updated successfully"})

    # ---------- Delete ----------
    @app.delete("/tasks/<task_id>")
    def delete_task(task_id):
        _service().delete(current_user_id(), task_id)
        return jsonify({"message": "Task deleted successfully"})

    # プリフライト
    @app.route("/", methods=["OPTIONS"])
    @app.route("/<path:path>", methods=["OPTIONS"])
    def cors_preflight(path=None):
        return ("", 204)

    return app


app = create_app()
