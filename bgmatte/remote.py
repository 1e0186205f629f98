from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

import requests

from .buffer import PixelBuffer
from .codec import PixelCodec, decode_image
from .config import REMOTE_SIZE, REMOTE_TIMEOUT_S
from .errors import DecodeError, RemoteRemovalError

logger = logging.getLogger(__name__)


def _get_timeout_s() -> float:
    try:
        return float(os.getenv("BG_REMOVAL_TIMEOUT_S", str(REMOTE_TIMEOUT_S)))
    except ValueError:
        return REMOTE_TIMEOUT_S


def _error_message(resp: requests.Response) -> str:
    """
    Best-effort error text: JSON `errors[0].title` / `error.message` / `error`, else the body.
    """
    default = f"API request failed with status {resp.status_code}"
    try:
        data = resp.json()
    except ValueError:
        text = (resp.text or "").strip()
        return text or default

    if isinstance(data, dict):
        errors = data.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("title") or errors[0].get("detail") or default)
        err = data.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or default)
        if err:
            return str(err)
    return default


@dataclass
class RemoteRemover:
    """
    Client for a remove.bg-style HTTP service: multipart upload of the original
    bytes plus a size hint, RGBA image back.
    """

    api_url: str
    api_key: str
    size: str = REMOTE_SIZE
    timeout_s: float = REMOTE_TIMEOUT_S
    codec: Optional[PixelCodec] = None

    @classmethod
    def from_env(cls) -> Optional["RemoteRemover"]:
        """None when BG_REMOVAL_API_URL / BG_REMOVAL_API_KEY are not both set."""
        api_url = os.getenv("BG_REMOVAL_API_URL", "").strip()
        api_key = os.getenv("BG_REMOVAL_API_KEY", "").strip()
        if not api_url or not api_key:
            return None
        return cls(api_url=api_url, api_key=api_key, timeout_s=_get_timeout_s())

    def remove(self, data: bytes) -> PixelBuffer:
        if not self.api_key:
            raise RemoteRemovalError("API key is not configured")

        try:
            resp = requests.post(
                self.api_url,
                headers={"X-Api-Key": self.api_key},
                files={"image_file": ("image.jpg", data)},
                data={"size": self.size},
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise RemoteRemovalError(f"Network error: could not reach {self.api_url}: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise RemoteRemovalError(_error_message(resp))

        try:
            out = decode_image(resp.content, self.codec)
        except DecodeError as e:
            raise RemoteRemovalError(f"Malformed response from {self.api_url}: {e}") from e

        logger.debug("remote removal returned %dx%d", out.width, out.height)
        return out
