# app/services/image_service.py

import logging
from typing import Optional, Dict, Any
import httpx
from app.config import settings

logger = logging.getLogger(__name__)

SUPPORTED_ASPECT_RATIOS = ("1:1", "16:9", "9:16", "4:3", "3:4")
MAX_PROMPT_LENGTH = 1800

VIEWS = [
    "frontal view", "45-degree angle", "top-down", "close-up",
    "wide shot", "three-quarter", "low angle", "side view",
]


def _first(*values):
    for value in values:
        if value:
            return value
    return None


def extract_image_url(payload: Dict[str, Any]) -> Optional[str]:
    data = payload.get("data") or {}
    response = data.get("response") or {}
    images = data.get("images") or [{}]
    return _first(
        response.get("resultImageUrl"),
        response.get("originImageUrl"),
        data.get("url"),
        data.get("image_url"),
        data.get("imageUrl"),
        images[0].get("url") if isinstance(images[0], dict) else None,
        payload.get("url"),
        payload.get("image_url"),
    )


class ImageGenerationService:
    def __init__(self):
        self.api_key = settings.image_api_key
        self.base_url = settings.image_api_base_url.rstrip("/")
        if not self.api_key:
            logger.warning("IMAGE_API_KEY is not set. Image generation will be unavailable.")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_prompt(self, index: int, custom_instructions: Optional[str] = None) -> str:
        prompt = (
            f"ANGLE: {VIEWS[index % len(VIEWS)]}. Professional Etsy lifestyle photo. "
            "Keep product IDENTICAL. Cozy lifestyle background. Soft lighting. NO text/watermarks."
        )
        if custom_instructions and custom_instructions.strip():
            prompt += f" {custom_instructions.strip()}"
        return prompt[:MAX_PROMPT_LENGTH]

    def submit(self, prompt: str, image_data_url: str, aspect_ratio: str = "1:1") -> Optional[str]:
        """Queue one image-to-image task, returns the task id or None."""
        body = {
            "type": "IMAGETOIAMGE",
            "prompt": prompt,
            "imageUrls": [image_data_url],
            "image_size": aspect_ratio if aspect_ratio in SUPPORTED_ASPECT_RATIOS else "1:1",
            "numImages": 1,
        }
        if settings.image_callback_url:
            body["callBackUrl"] = settings.image_callback_url
        try:
            with httpx.Client(timeout=6.0) as client:
                response = client.post(f"{self.base_url}/generate", json=body, headers=self._headers())
            if response.status_code != 200:
                logger.error(f"Image task submission failed: {response.status_code} {response.text[:200]}")
                return None
            data = response.json().get("data") or {}
            task_id = _first(data.get("task_id"), data.get("taskId"), data.get("id"))
            logger.info(f"Image task submitted: {task_id}")
            return task_id
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Image task submission error: {e}")
            return None

    def check_status(self, task_id: str) -> Dict[str, Any]:
        # The API has been seen answering to either query parameter name
        for param in ("taskId", "task_id"):
            try:
                with httpx.Client(timeout=10.0) as client:
                    response = client.get(
                        f"{self.base_url}/record-info",
                        params={param: task_id},
                        headers=self._headers(),
                    )
                if response.status_code != 200:
                    continue
                payload = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Image status check ({param}) failed: {e}")
                continue

            if payload.get("code") in (0, 200) or payload.get("msg") == "success":
                image_url = extract_image_url(payload)
                if image_url:
                    return {"status": "ready", "url": image_url}
                data = payload.get("data") or {}
                task_status = _first(data.get("status"), data.get("state"), payload.get("status"))
                if task_status in ("completed", "done", "success"):
                    return {"status": "error", "message": "Task completed but no image URL found"}
                if task_status in ("failed", "error"):
                    return {"status": "error", "message": data.get("error") or "Image generation failed"}
            return {"status": "pending"}

        return {"status": "pending"}


# Global image generation instance
image_service = ImageGenerationService()
