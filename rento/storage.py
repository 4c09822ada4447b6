import logging
import httpx

from .config import settings

logger = logging.getLogger("rento")


class ObjectStorage:
    """Thin client for the bucket that holds listing images."""

    def __init__(self, base_url: str, bucket: str, api_key: str = "", client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.api_key = api_key
        self.client = client or httpx.Client(timeout=30.0)

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> bool:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        headers = {"Content-Type": content_type}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = self.client.post(url, content=data, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to upload {path} to bucket {self.bucket}: {e}")
            return False
        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")
        return True

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"


def get_storage():
    storage = ObjectStorage(settings.STORAGE_URL, settings.STORAGE_BUCKET, settings.STORAGE_API_KEY)
    try:
        yield storage
    finally:
        storage.client.close()
