"""Flask gateway exposing find-or-create face submission over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Request, current_app, jsonify, request
from werkzeug.exceptions import BadRequest, RequestEntityTooLarge

from face_dedup.bootstrap import create_coordinator
from face_dedup.config import get_config
from face_dedup.coordinator import DedupCoordinator
from face_dedup.errors import (
    LockTimeout,
    PersistenceFailed,
    SubmissionCancelled,
    ValidationError,
)
from face_dedup.face import UNKNOWN, FaceMetadata

logger = logging.getLogger(__name__)

EXTENSION_KEY = "face_dedup"
RETRY_AFTER_SECONDS = 1


def _error(kind: str, message: str, status: int):
    return jsonify({"error": kind, "message": message}), status


def client_address(req: Request) -> str:
    """Best-effort client address: proxy headers first, then the socket peer."""
    forwarded = req.headers.get("X-Forwarded-For", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = req.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return req.remote_addr or UNKNOWN


def parse_submission(payload: Any, req: Request) -> Tuple[Any, Optional[str], FaceMetadata]:
    """Split a check-or-save body into descriptor, image and metadata.

    Raises:
        ValidationError: If the body is not a JSON object of the expected shape
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    if "descriptor" not in payload:
        raise ValidationError("Missing field: descriptor")

    image = payload.get("image")
    if image is not None and not isinstance(image, str):
        raise ValidationError("image must be a string")

    location = payload.get("location")
    if location is not None and not isinstance(location, dict):
        raise ValidationError("location must be an object")

    device = payload.get("device") or req.headers.get("User-Agent") or UNKNOWN
    if not isinstance(device, str):
        raise ValidationError("device must be a string")

    metadata = FaceMetadata(
        device=device,
        network_origin=client_address(req),
        location=location or None,
    )
    return payload["descriptor"], image, metadata


def _coordinator() -> DedupCoordinator:
    return current_app.extensions[EXTENSION_KEY]


def create_app(
    config: Optional[Dict[str, Any]] = None,
    coordinator: Optional[DedupCoordinator] = None,
) -> Flask:
    """Build the gateway app.

    The coordinator (and its store) is created once here and kept on the
    app; request handlers reach it through current_app.
    """
    config = config or get_config()
    coordinator = coordinator or create_coordinator(config)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config["server"]["max_content_length"]
    app.extensions[EXTENSION_KEY] = coordinator

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(exc: RequestEntityTooLarge):
        return _error("PayloadTooLarge", "Request body is too large", 413)

    @app.post("/api/face/check-or-save")
    def check_or_save():
        try:
            payload = request.get_json(force=True)
        except BadRequest:
            return _error("ValidationError", "Request body must be valid JSON", 400)

        try:
            descriptor, image, metadata = parse_submission(payload, request)
            result = _coordinator().process_submission(descriptor, metadata, image)
        except ValidationError as exc:
            return _error("ValidationError", str(exc), 400)
        except LockTimeout as exc:
            response, status = _error("LockTimeout", str(exc), 503)
            response.headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
            return response, status
        except SubmissionCancelled as exc:
            return _error("SubmissionCancelled", str(exc), 503)
        except PersistenceFailed as exc:
            logger.error(f"Submission failed: {exc}")
            return _error("PersistenceFailed", "Could not save face", 500)

        status = 200 if result.is_match else 201
        return jsonify({"message": result.message}), status

    @app.get("/api/face/count")
    def count():
        return jsonify({"count": _coordinator().count()})

    @app.get("/api/health")
    def health():
        coordinator = _coordinator()
        return jsonify({
            "status": "ok",
            "faces": coordinator.count(),
            "stats": coordinator.stats,
        })

    return app
