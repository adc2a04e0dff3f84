# images.py
# Client for the external image host (Cloudinary's signed upload API).

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import ImageHostError

# Get a logger instance
logger = logging.getLogger(__name__)

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"


@dataclass
class StoredImage:
    url: str
    public_id: str


class CloudinaryImageHost:
    """
    Uploads raw image bytes and deletes them again by public id.

    Requests are signed with the API secret as described in Cloudinary's
    "signed upload" documentation: the sorted request parameters are joined as
    ``key=value`` pairs with ``&``, the secret is appended and the whole string
    is SHA-1 hashed.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "recipes",
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.client = client if client is not None else httpx.Client(timeout=timeout)

    def _endpoint(self, action: str) -> str:
        return f"{CLOUDINARY_API_BASE}/{self.cloud_name}/image/{action}"

    def sign(self, params: dict) -> str:
        to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed_params(self, params: dict) -> dict:
        params = {**params, "timestamp": int(time.time())}
        return {**params, "api_key": self.api_key, "signature": self.sign(params)}

    def upload(self, data: bytes, filename: str = "image", content_type: str = "image/jpeg") -> StoredImage:
        params = self._signed_params({"folder": self.folder})
        try:
            response = self.client.post(
                self._endpoint("upload"),
                data=params,
                files={"file": (filename, data, content_type)},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Image upload failed: {e}")
            raise ImageHostError("Failed to upload image") from e

        if "secure_url" not in payload or "public_id" not in payload:
            logger.error(f"Unexpected upload response: {payload}")
            raise ImageHostError("Failed to upload image")

        logger.debug(f"Uploaded image {payload['public_id']}")
        return StoredImage(url=payload["secure_url"], public_id=payload["public_id"])

    def destroy(self, public_id: str) -> None:
        params = self._signed_params({"public_id": public_id})
        try:
            response = self.client.post(self._endpoint("destroy"), data=params)
            response.raise_for_status()
            result = response.json().get("result")
        except (httpx.HTTPError, ValueError) as e:
            raise ImageHostError(f"Failed to delete image {public_id}") from e

        if result not in ("ok", "not found"):
            raise ImageHostError(f"Failed to delete image {public_id}: {result}")
        logger.debug(f"Deleted image {public_id} ({result})")


def release_image(image_host, public_id: Optional[str]) -> None:
    """
    Best-effort delete of a hosted image. Failures are logged and never raised.
    """
    if not public_id:
        return
    if image_host is None:
        logger.warning(f"No image host configured; image {public_id} was not released")
        return
    try:
        image_host.destroy(public_id)
    except Exception:
        logger.exception(f"Error deleting image {public_id} from image host")


_image_host: Optional[CloudinaryImageHost] = None


def get_image_host() -> Optional[CloudinaryImageHost]:
    """
    Dependency returning the configured image host, or None when uploads are not configured.
    """
    global _image_host
    if _image_host is None and settings.CLOUDINARY_CLOUD_NAME:
        _image_host = CloudinaryImageHost(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY or "",
            api_secret=settings.CLOUDINARY_API_SECRET or "",
            folder=settings.CLOUDINARY_FOLDER,
        )
    return _image_host
