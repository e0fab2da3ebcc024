from __future__ import annotations

import logging
import time
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from .aspect_ratios import canonical_size, expanded_size
from .config import Settings
from .errors import JobTimeoutError
from .firefly_client import FireflyClient
from .models import CampaignBrief, JobResult, Product

NUM_VARIATIONS = 3
CONTENT_CLASS = "photo"


def build_prompt(product: Product, brief: CampaignBrief) -> str:
    """Direct prompt template used when no scene plan is requested."""
    return (
        f'A promotional image for a "{product.name}" ({product.description}) '
        f"targeting {brief.target_audience}. "
        f'The message is: "{brief.campaign_message}".'
    )


def _encode_png(image_path: Path) -> bytes:
    """Read a cutout from disk and re-encode it as PNG for upload."""
    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Cutout image not found: {image_path}")

    with Image.open(image_path) as img:
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        buffer = BytesIO()
        img.save(buffer, format="PNG")
    return buffer.getvalue()


class GenerationClient:
    """
    Submits Firefly generation jobs and waits for them to finish.

    Polling is an explicit loop over GET /v3/status/{jobId}: ``running`` and
    ``cancel_pending`` are re-polled after ``poll_interval`` seconds, every
    other status is terminal and returned to the caller. Without ``max_wait``
    or ``max_attempts`` the loop only ends when the service reports a
    terminal status.
    """

    def __init__(
            self,
            firefly: FireflyClient,
            poll_interval: float = 1.0,
            max_wait: Optional[float] = None,
            max_attempts: Optional[int] = None,
            model_version: Optional[str] = None,
            sleep: Callable[[float], None] = time.sleep,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.firefly = firefly
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self.max_attempts = max_attempts
        self.model_version = model_version
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "GenerationClient":
        kwargs.setdefault("poll_interval", settings.poll_interval)
        kwargs.setdefault("max_wait", settings.max_wait)
        kwargs.setdefault("model_version", settings.image_model_version)
        return cls(FireflyClient(settings), **kwargs)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_text_to_image(self, prompt: str, ratio: str, locale_code: Optional[str]) -> str:
        width, height = expanded_size(ratio)
        body = {
            "prompt": prompt,
            "size": {"width": width, "height": height},
            "contentClass": CONTENT_CLASS,
            "numVariations": NUM_VARIATIONS,
        }
        if locale_code:
            body["promptBiasingLocaleCode"] = locale_code

        logging.info("Submitting text-to-image job at %sx%s (%s)", width, height, ratio)
        job_id = self.firefly.generate_images_async(body, model_version=self.model_version)
        logging.debug("Firefly accepted job %s", job_id)
        return job_id

    def submit_object_composite(self, prompt: str, cutout_path: Path, ratio: str) -> str:
        # Composites are only rendered at native sizes; unsupported ratios
        # surface the suggestion instead of being substituted here.
        width, height = canonical_size(ratio)

        upload_id = self.firefly.upload_image(_encode_png(cutout_path), "image/png")
        logging.debug("Uploaded cutout %s as %s", cutout_path, upload_id)

        body = {
            "prompt": prompt,
            "contentClass": CONTENT_CLASS,
            "image": {"source": {"uploadId": upload_id}},
            "numVariations": NUM_VARIATIONS,
            "placement": {"alignment": {"horizontal": "center", "vertical": "center"}},
            "size": {"width": width, "height": height},
        }
        logging.info("Submitting object composite job at %sx%s (%s)", width, height, ratio)
        job_id = self.firefly.generate_object_composite_async(body)
        logging.debug("Firefly accepted job %s", job_id)
        return job_id

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def get_job_result(self, job_id: str) -> JobResult:
        return JobResult.from_payload(self.firefly.get_job_status(job_id), job_id=job_id)

    def await_job_completion(self, job_id: str) -> JobResult:
        """Poll ``job_id`` until it reaches a terminal status."""
        started = self._clock()
        attempts = 0

        while True:
            result = self.get_job_result(job_id)
            attempts += 1
            if result.status.is_terminal:
                logging.debug("Job %s finished with status %s", job_id, result.status.value)
                return result

            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise JobTimeoutError(
                    f"Job {job_id} still '{result.status.value}' after {attempts} polls"
                )
            if self.max_wait is not None and self._clock() - started >= self.max_wait:
                raise JobTimeoutError(
                    f"Job {job_id} still '{result.status.value}' after {self.max_wait}s"
                )

            logging.debug(
                "Job %s is %s, waiting %ss...", job_id, result.status.value, self.poll_interval
            )
            self._sleep(self.poll_interval)

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    def generate_images(self, prompt: str, ratio: str, locale_code: Optional[str]) -> JobResult:
        return self.await_job_completion(self.submit_text_to_image(prompt, ratio, locale_code))

    def generate_object_composite(self, prompt: str, cutout_path: Path, ratio: str) -> JobResult:
        return self.await_job_completion(
            self.submit_object_composite(prompt, cutout_path, ratio)
        )
