from __future__ import annotations

import logging

from flask import Flask, jsonify, send_from_directory
from werkzeug.exceptions import RequestEntityTooLarge

from portal import config
from portal.cli import register_commands
from portal.mailer import mail
from portal.routes import auth_bp, contact_bp, courses_bp, grades_bp, users_bp

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config["SESSION_COOKIE_NAME"] = config.SESSION_COOKIE_NAME
app.config["SESSION_COOKIE_HTTPONLY"] = True
app.config["UPLOAD_FOLDER"] = config.UPLOAD_FOLDER
# Leave room for multipart framing around a file at the upload limit.
app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES + 1024 * 1024
app.config.update(config.mail_settings())

mail.init_app(app)
register_commands(app)

app.register_blueprint(auth_bp)
app.register_blueprint(contact_bp)
app.register_blueprint(courses_bp)
app.register_blueprint(grades_bp)
app.register_blueprint(users_bp)

logger = logging.getLogger(__name__)


@app.errorhandler(RequestEntityTooLarge)
def request_too_large(exc: RequestEntityTooLarge):
    logger.warning("Rejected oversized request body")
    return jsonify({"error": "File exceeds the upload size limit."}), 413


@app.get("/api/health")
def health():
    return jsonify({"ok": True})


@app.route("/uploads/<path:filename>")
def uploaded_file(filename: str):
    return send_from_directory(app.config["UPLOAD_FOLDER"], filename)


if __name__ == "__main__":
    app.run(debug=True)
