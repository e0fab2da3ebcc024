from __future__ import annotations

"""
Datamodels used throughout the creative generation pipeline.

These dataclasses are intentionally small so they can be constructed from
JSON or YAML briefs and from Firefly job payloads and passed between modules
without bringing in framework specific dependencies.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ExternalServiceError


@dataclass(frozen=True)
class Product:
    """Description of a single product that needs creatives generated."""

    # Human readable product name, also used for directory naming.
    name: str

    # Free-form description surfaced in prompts.
    description: str

    # Optional absolute path to a cutout image used as the compositing subject.
    cutout_image: Optional[Path] = None


@dataclass(frozen=True)
class CampaignBrief:
    """Top level campaign configuration parsed from the brief file."""

    name: str

    # Locale code in the form "lang-COUNTRY", e.g. en-US.
    target_region: str
    target_audience: str
    campaign_message: str

    # Products that will each get a full set of creatives.
    products: Tuple[Product, ...] = ()


@dataclass
class GenerationOptions:
    """Per-run options supplied by the caller."""

    output_dir: Path
    aspect_ratios: List[str] = field(default_factory=lambda: ["1:1", "16:9"])

    # Ask the scene planner for the prompt instead of the direct template.
    use_scene_planner: bool = False

    # Reuse one scene plan per product across all of its ratios.
    cache_scene_plans: bool = False

    # Keep unsupported ratios and render them at an area-preserving size
    # instead of substituting the nearest supported ratio.
    expand_unsupported_ratios: bool = False


class JobStatus(str, Enum):
    RUNNING = "running"
    CANCEL_PENDING = "cancel_pending"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobStatus.RUNNING, JobStatus.CANCEL_PENDING)


@dataclass(frozen=True)
class JobOutput:
    """One generated variation of a succeeded job."""

    image_url: Optional[str] = None
    seed: Optional[int] = None


@dataclass(frozen=True)
class JobResult:
    """Result of polling a Firefly job, as returned by GET /v3/status/{jobId}."""

    job_id: str
    status: JobStatus
    outputs: Tuple[JobOutput, ...] = ()
    error_code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], job_id: str = "") -> "JobResult":
        """Build a JobResult from the status endpoint's JSON body."""
        if not isinstance(payload, dict):
            raise ExternalServiceError(f"Malformed status response for job {job_id}: {payload!r}")
        raw_status = payload.get("status")
        try:
            status = JobStatus(raw_status)
        except ValueError as exc:
            raise ExternalServiceError(
                f"Unknown status {raw_status!r} for job {job_id or payload.get('jobId')}"
            ) from exc

        result = payload.get("result") or {}
        raw_outputs = result.get("outputs") if isinstance(result, dict) else None
        if not isinstance(raw_outputs, (list, type(None))):
            raise ExternalServiceError(f"Malformed outputs in status response for job {job_id}")

        outputs = []
        for raw in raw_outputs or []:
            if not isinstance(raw, dict):
                # Counted as an output without an image so siblings still download.
                outputs.append(JobOutput())
                continue
            image = raw.get("image")
            url = image.get("url") if isinstance(image, dict) else None
            outputs.append(JobOutput(image_url=url, seed=raw.get("seed")))

        return cls(
            job_id=payload.get("jobId") or job_id,
            status=status,
            outputs=tuple(outputs),
            error_code=payload.get("error_code"),
            message=payload.get("message"),
        )

    def raise_for_status(self) -> None:
        """Raise ExternalServiceError unless the job succeeded."""
        if self.status is JobStatus.SUCCEEDED:
            return
        detail = ""
        if self.error_code or self.message:
            detail = f" ({self.error_code or 'error'}: {self.message or 'no message'})"
        raise ExternalServiceError(
            f"Failed to generate image: job {self.job_id} ended with status "
            f"'{self.status.value}'{detail}"
        )


@dataclass(frozen=True)
class DownloadResult:
    """Outcome of downloading one output of a job."""

    index: int
    path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.path is not None and self.error is None


@dataclass(frozen=True)
class UnitProgress:
    """Progress event emitted once per (product, ratio) unit."""

    product: Product
    ratio: str
    succeeded: bool
    files: Tuple[Path, ...] = ()
    error: Optional[str] = None


@dataclass
class RunSummary:
    units: int = 0
    failed_units: int = 0
    files: List[Path] = field(default_factory=list)

    @property
    def succeeded_units(self) -> int:
        return self.units - self.failed_units
