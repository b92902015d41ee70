"""
本地文件存储

头像、帖子配图按 bucket/folder 组织在 UPLOAD_FOLDER 下，
通过 /uploads/<bucket>/<path> 对外提供访问。
"""

import logging
import os
import time
import uuid

from flask import current_app, url_for
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

ALLOWED_BUCKETS = ("avatars", "post-images")


class StorageError(ValueError):
    """上传文件校验失败"""


def _file_size(file: FileStorage) -> int:
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def validate_image(file: FileStorage):
    if file is None or not file.filename:
        raise StorageError("未提供任何文件")
    if not (file.mimetype or "").startswith("image/"):
        raise StorageError("只允许上传图片文件")
    max_size = current_app.config["MAX_IMAGE_SIZE"]
    if _file_size(file) > max_size:
        raise StorageError(f"文件过大，最大允许 {max_size // (1024 * 1024)}MB")


def save_image(file: FileStorage, bucket: str = "avatars", folder: str = None):
    """
    保存图片并返回访问信息

    返回:
        dict: {"path", "full_path", "public_url"}
    """
    if bucket not in ALLOWED_BUCKETS:
        raise StorageError("存储桶不存在")
    validate_image(file)

    original = secure_filename(file.filename)
    ext = original.rsplit(".", 1)[-1].lower() if "." in original else "bin"
    filename = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}.{ext}"
    path = f"{folder}/{filename}" if folder else filename

    target_dir = os.path.join(current_app.config["UPLOAD_FOLDER"], bucket)
    if folder:
        target_dir = os.path.join(target_dir, folder)
    os.makedirs(target_dir, exist_ok=True)

    full_path = os.path.join(target_dir, filename)
    file.save(full_path)
    logger.info(f"文件已保存: {bucket}/{path}")

    return {
        "path": path,
        "full_path": f"{bucket}/{path}",
        "public_url": url_for("uploads.serve_upload", bucket=bucket, path=path),
    }
