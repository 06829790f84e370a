"""Web API routes for SceneForge."""

import json
import logging
import math
import queue
import threading
import uuid
from pathlib import Path

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    request,
    send_file,
    send_from_directory,
)

from sceneforge.errors import SceneForgeError
from sceneforge.ffutil import FFmpeg
from sceneforge.pipeline import Pipeline

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

WORKFLOWS = ("detect", "auto", "silence", "thumbnails")
NUMERIC_PARAMS = ("threshold", "min_duration", "threshold_db", "padding")

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


def _numeric_params(body: dict) -> dict:
    """Coerce the optional numeric workflow settings to floats.

    Raises ValueError for anything that is not a finite number.
    """
    params = {}
    for key in NUMERIC_PARAMS:
        value = body.get(key)
        if value is None:
            continue
        if isinstance(value, bool):
            raise ValueError(f"{key} must be a number, got {value!r}")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {value!r}") from None
        if not math.isfinite(number):
            raise ValueError(f"{key} must be finite, got {value!r}")
        params[key] = number
    return params


def _run_workflow(pipeline: Pipeline, workflow: str, job: dict, params: dict) -> tuple[dict, Path | None]:
    """Run one workflow inside the job directory; return (summary, primary artifact)."""
    input_path: Path = job["input_path"]
    job_dir: Path = job["dir"]

    if workflow == "detect":
        return {"scenes": pipeline.detect(input_path, params.get("threshold"))}, None

    if workflow == "auto":
        result = pipeline.auto(
            input_path,
            min_duration=params.get("min_duration"),
            threshold=params.get("threshold"),
            clips_dir=job_dir / "scenes",
            output=job_dir / f"merged{input_path.suffix}",
        )
        return result.to_dict(), result.merged_file

    if workflow == "silence":
        result = pipeline.remove_silence(
            input_path,
            job_dir / f"no_silence{input_path.suffix}",
            threshold_db=params.get("threshold_db"),
            min_duration=params.get("min_duration"),
            padding=params.get("padding"),
        )
        return result.to_dict(), result.output_path

    result = pipeline.thumbnails(input_path, job_dir / "thumbnails")
    return result.to_dict(), result.outputs.get("storyboard")


@bp.route("/")
def index():
    return jsonify({"name": "SceneForge", "workflows": list(WORKFLOWS)})


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = job_dir / f"input{ext}"
    f.save(input_path)

    _jobs[job_id] = {
        "dir": job_dir,
        "input_path": input_path,
        "filename": f.filename,
        "status": "uploaded",
    }

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/run", methods=["POST"])
def start_workflow(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] not in ("uploaded", "done", "error"):
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    body = request.get_json(silent=True) or {}
    workflow = body.get("workflow", "auto")
    if workflow not in WORKFLOWS:
        return jsonify({"error": f"Unknown workflow: {workflow}"}), 400
    try:
        params = _numeric_params(body)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    config = current_app.config["SCENEFORGE"]
    progress_queue: queue.Queue = queue.Queue()
    job["progress_queue"] = progress_queue
    job["status"] = "processing"
    job["workflow"] = workflow
    job["error"] = None
    job["artifact"] = None

    def run():
        try:
            def on_progress(stage: str, frac: float):
                progress_queue.put({"stage": stage, "progress": round(frac, 3)})

            pipeline = Pipeline(FFmpeg(config.engine), config, on_progress=on_progress)
            job["result"], job["artifact"] = _run_workflow(pipeline, workflow, job, params)
            job["status"] = "done"
        except (SceneForgeError, OSError, ValueError) as e:
            logger.warning("Job %s failed: %s", job_id, e)
            job["error"] = str(e)
            job["status"] = "error"
        except Exception as e:
            logger.exception("Job %s crashed", job_id)
            job["error"] = str(e)
            job["status"] = "error"
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started", "workflow": workflow})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    q = job.get("progress_queue")

    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                else:
                    data = json.dumps({
                        "stage": "complete",
                        "progress": 1.0,
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409
    if not job.get("artifact"):
        return jsonify({"error": "Workflow produced no downloadable file"}), 404

    return send_file(Path(job["artifact"]), as_attachment=False)


@bp.route("/api/jobs/<job_id>/files/<path:name>")
def download_file(job_id: str, name: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404
    return send_from_directory(_jobs[job_id]["dir"], name)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    resp = {"status": job["status"], "filename": job.get("filename")}
    if job.get("workflow"):
        resp["workflow"] = job["workflow"]
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)
