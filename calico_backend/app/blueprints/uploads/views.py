import os
from flask import current_app, jsonify, send_from_directory
from app.core.storage import ALLOWED_BUCKETS
from . import uploads_bp


@uploads_bp.route("/uploads/<bucket>/<path:path>", methods=["GET"])
def serve_upload(bucket, path):
    """
    访问已上传的文件
    ---
    tags:
      - Uploads
    parameters:
      - in: path
        name: bucket
        type: string
        required: true
        enum: [avatars, post-images]
      - in: path
        name: path
        type: string
        required: true
    responses:
      200:
        description: 文件内容
      404:
        description: 文件不存在
    """
    if bucket not in ALLOWED_BUCKETS:
        return jsonify({"error": "存储桶不存在"}), 404
    directory = os.path.join(current_app.config["UPLOAD_FOLDER"], bucket)
    return send_from_directory(directory, path)
