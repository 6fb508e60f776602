"""Upload collaborator: receives images and serves them back.

Routes:
    POST /upload            multipart field ``image`` (png/jpeg only);
                            JSON ``{"message", "filePath"}`` on success,
                            400 plain text otherwise
    GET  /uploads/<name>    stored file (prefix from ``upload.url_prefix``)

Stored names are ``<ms timestamp>-<random 0..1e9><ext>`` so concurrent
uploads of the same file never collide.  Nothing here touches a session.

Usage:
    pointmapper-server --config configs/pointmapper_v1.yaml --port 3000
"""

import argparse
import logging
import random
import sys
import time
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, request, send_from_directory

from pointmapper.utils import fs, validators
from pointmapper.utils.logging_config import push_context, setup_logging

logger = logging.getLogger(__name__)

REJECTED_MESSAGE = "No file uploaded or invalid file type."

# extensions kept verbatim; anything else falls back to the MIME type
STORED_EXTENSIONS = (".png", ".jpg", ".jpeg")
MIME_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/jpg": ".jpg"}


class UploadError(Exception):
    """Missing file or disallowed MIME type."""

    pass


def stored_name(filename: str, mimetype: Optional[str] = None) -> str:
    """Collision-resistant file name keeping the uploaded extension.

    The suffix is read from the raw client name, so non-ASCII stems keep it.
    Only image suffixes are kept; otherwise it comes from ``mimetype``.
    """
    ext = Path(filename).suffix.lower()
    if ext not in STORED_EXTENSIONS:
        ext = MIME_EXTENSIONS.get(mimetype or "", "")
    return f"{int(time.time() * 1000)}-{round(random.random() * 1e9)}{ext}"


def create_app(settings: Optional[validators.SettingsV1] = None) -> Flask:
    """Build the upload app.

    Parameters
    ----------
    settings : SettingsV1, optional
        Only the ``upload`` section is used; defaults when omitted.
    """
    settings = settings or validators.SettingsV1()
    cfg = settings.upload
    upload_dir = fs.ensure_dir(Path(cfg.upload_dir).resolve())

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = cfg.max_content_length
    app.config["UPLOAD_DIR"] = str(upload_dir)

    @app.errorhandler(UploadError)
    def handle_upload_error(e):
        logger.warning("Upload rejected: %s", e)
        return REJECTED_MESSAGE, 400, {"Content-Type": "text/plain; charset=utf-8"}

    @app.route("/upload", methods=["POST"])
    def upload():
        file = request.files.get("image")
        if file is None or not file.filename:
            raise UploadError("no file in field 'image'")
        if file.mimetype not in cfg.allowed_mime_types:
            raise UploadError(f"MIME type {file.mimetype!r} not allowed")

        name = stored_name(file.filename, file.mimetype)
        file.save(upload_dir / name)
        logger.info("Stored upload %s as %s", file.filename, name)
        return jsonify({
            "message": "File uploaded successfully",
            "filePath": f"{cfg.url_prefix}/{name}",
        })

    @app.route(f"{cfg.url_prefix}/<path:name>")
    def uploaded_file(name):
        return send_from_directory(upload_dir, name)

    return app


def main() -> int:
    """CLI entrypoint for the upload server."""
    parser = argparse.ArgumentParser(description="Serve the Point Mapper upload endpoint")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML (pointmapper.v1)")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3000)
    args = parser.parse_args()

    try:
        settings = validators.load_settings(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    log = settings.logging
    setup_logging(
        log_level=log.log_level,
        log_file=log.log_file,
        json=log.json_format,
        color=log.color,
        quiet_libs=["PIL"],
    )
    push_context(app="server")

    app = create_app(settings)
    logger.info("Server running at http://%s:%d", args.host, args.port)
    app.run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
