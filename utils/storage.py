import os
import mimetypes
from typing import Optional
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from core.config import s3, R2_BUCKET, R2_PUBLIC_BASE_URL, STATIC_DIR, logger
from core.errors import BackendUnavailableError


def guess_content_type(filename: str) -> str:
    ct, _ = mimetypes.guess_type(filename or "")
    return ct or "application/octet-stream"


class ObjectStorage:
    """put(path, blob) -> stored path; public_url(stored path) -> URL."""

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        raise NotImplementedError


class R2Storage(ObjectStorage):
    def __init__(self, resource, bucket: str, public_base_url: str = ""):
        self.resource = resource
        self.bucket = bucket
        self.public_base_url = (public_base_url or "").rstrip("/")

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            self.resource.Bucket(self.bucket).put_object(
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl="public, max-age=604800",
            )
        except (BotoCoreError, ClientError) as ex:
            logger.warning(f"[storage.put] failed key={key}: {ex}")
            raise BackendUnavailableError(f"upload failed for {key}", cause=ex) from ex
        return key

    def public_url(self, key: str) -> str:
        path = quote(key.lstrip("/"), safe="/")
        if self.public_base_url:
            return f"{self.public_base_url}/{path}"
        # Bucket endpoint; only resolvable when the bucket allows public reads
        endpoint = self.resource.meta.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{path}"


class LocalStorage(ObjectStorage):
    """Writes under STATIC_DIR; served by the app at /static."""

    def __init__(self, root: str = STATIC_DIR, url_prefix: str = "/static"):
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        root = os.path.realpath(self.root)
        local_path = os.path.realpath(os.path.join(root, key))
        if os.path.commonpath([root, local_path]) != root or local_path == root:
            raise ValueError(f"key escapes storage root: {key}")
        try:
            os.makedirs(os.path.dirname(local_path), exist_ok=True)
            with open(local_path, "wb") as f:
                f.write(data)
        except OSError as ex:
            logger.warning(f"[storage.put] local write failed {local_path}: {ex}")
            raise BackendUnavailableError(f"upload failed for {key}", cause=ex) from ex
        logger.info(f"Saved locally: {local_path}")
        return key

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}/{quote(key.lstrip('/'), safe='/')}"


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    """R2 when configured, otherwise the local static directory."""
    global _storage
    if _storage is None:
        if s3 and R2_BUCKET:
            _storage = R2Storage(s3, R2_BUCKET, R2_PUBLIC_BASE_URL)
        else:
            logger.warning("R2 not configured - storing uploads under static/")
            _storage = LocalStorage()
    return _storage
