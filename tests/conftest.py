from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
import requests

from creative_generation.config import Settings
from creative_generation.image_generator import GenerationClient
from creative_generation.models import CampaignBrief, Product
from creative_generation.processor import CreativeEngine


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def status_payload(status: str, job_id: str = "job-1", **extra: Any) -> Dict[str, Any]:
    payload = {"jobId": job_id, "status": status}
    payload.update(extra)
    return payload


def succeeded_payload(
        seeds: Sequence[Optional[int]] = (11, 12, 13),
        urls: Optional[Sequence[Optional[str]]] = None,
        job_id: str = "job-1",
) -> Dict[str, Any]:
    if urls is None:
        urls = [f"https://cdn.example.com/{job_id}/{i}.jpg" for i in range(len(seeds))]
    outputs = []
    for seed, url in zip(seeds, urls):
        output: Dict[str, Any] = {"seed": seed}
        if url is not None:
            output["image"] = {"url": url}
        outputs.append(output)
    return {
        "jobId": job_id,
        "status": "succeeded",
        "result": {"outputs": outputs, "size": {"width": 1024, "height": 1024}},
    }


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeFirefly:
    """
    Stands in for FireflyClient.

    Each submitted job consumes the next script from ``scripts`` (a list of
    status payloads returned by successive polls). Without scripts, every
    job reports running once and then succeeds with three outputs.
    """

    def __init__(self, scripts: Optional[List[List[Dict[str, Any]]]] = None):
        self.scripts = list(scripts or [])
        self.generate_calls: List[Dict[str, Any]] = []
        self.composite_calls: List[Dict[str, Any]] = []
        self.uploads: List[bytes] = []
        self.status_calls: List[str] = []
        self._jobs: Dict[str, List[Dict[str, Any]]] = {}

    def _new_job(self) -> str:
        job_id = f"job-{len(self._jobs) + 1}"
        if self.scripts:
            script = self.scripts.pop(0)
        else:
            script = [status_payload("running", job_id), succeeded_payload(job_id=job_id)]
        self._jobs[job_id] = list(script)
        return job_id

    def generate_images_async(self, body, model_version=None):
        self.generate_calls.append({"body": body, "model_version": model_version})
        return self._new_job()

    def generate_object_composite_async(self, body):
        self.composite_calls.append({"body": body})
        return self._new_job()

    def upload_image(self, content, content_type="image/png"):
        self.uploads.append(content)
        return f"upload-{len(self.uploads)}"

    def get_job_status(self, job_id):
        self.status_calls.append(job_id)
        script = self._jobs[job_id]
        if len(script) > 1:
            return script.pop(0)
        return script[0]


class FakeDownloadResponse:
    def __init__(self, content: bytes = b"jpeg-bytes", status_code: int = 200, truncated: bool = False):
        self.content = content
        self.status_code = status_code
        self.truncated = truncated

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]
        if self.truncated:
            raise requests.ConnectionError("connection dropped mid-stream")


class FakeSession:
    """
    requests.Session stand-in for downloads. URLs in ``failing`` return 500,
    URLs in ``truncated`` send part of the body and then drop the connection.
    """

    def __init__(self, failing: Sequence[str] = (), truncated: Sequence[str] = ()):
        self.failing = set(failing)
        self.truncated = set(truncated)
        self.requested: List[str] = []
        self._lock = threading.Lock()

    def get(self, url, stream=False, timeout=None):
        with self._lock:
            self.requested.append(url)
        if url in self.failing:
            return FakeDownloadResponse(status_code=500)
        if url in self.truncated:
            return FakeDownloadResponse(content=b"partial-jpeg", truncated=True)
        return FakeDownloadResponse(content=f"image:{url}".encode())


class FakeScenePlanner:
    def __init__(self, prompt: str = "A sunlit picnic table in a park", error: Exception = None):
        self.prompt = prompt
        self.error = error
        self.cache = False
        self.calls: List[str] = []
        self.cache_clears = 0

    def clear_cache(self):
        self.cache_clears += 1

    def prompt_for(self, product, brief):
        self.calls.append(product.name)
        if self.error is not None:
            raise self.error
        return self.prompt


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        firefly_client_id="client-id",
        firefly_client_secret="client-secret",
        firefly_base_url="https://firefly.example.com",
        ims_token_url="https://ims.example.com/token",
        firefly_scopes="firefly_api,ff_apis",
        gemini_api_key="gemini-key",
    )


@pytest.fixture
def brief() -> CampaignBrief:
    return CampaignBrief(
        name="Summer",
        target_region="en-US",
        target_audience="young adults who love the outdoors",
        campaign_message="Stay cool all summer",
        products=(Product(name="Widget", description="A refreshing sparkling water"),),
    )


@pytest.fixture
def firefly() -> FakeFirefly:
    return FakeFirefly()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_engine(settings, session, sleeps):
    def _make(firefly: FakeFirefly, scene_planner=None, download_session=None) -> CreativeEngine:
        client = GenerationClient(firefly, sleep=lambda s: None)
        return CreativeEngine(
            settings,
            image_client=client,
            scene_planner=scene_planner,
            session=download_session or session,
            sleep=sleeps.append,
        )

    return _make


def files_in(path: Path) -> List[str]:
    return sorted(p.name for p in path.iterdir())
