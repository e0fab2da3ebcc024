from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import requests

from .aspect_ratios import parse_aspect_ratio, resolve_aspect_ratios
from .config import Settings
from .errors import CreativeGenerationError, DownloadError, ExternalServiceError
from .image_generator import GenerationClient, build_prompt
from .models import (
    CampaignBrief,
    DownloadResult,
    GenerationOptions,
    JobResult,
    Product,
    RunSummary,
    UnitProgress,
)
from .scene_planner import ScenePlanner
from .utils import download_file, output_filename, unit_output_dir
from .validation import validate_brief

ProgressCallback = Callable[[UnitProgress], None]

# Upper bound on concurrent downloads for a single job's outputs.
MAX_DOWNLOAD_WORKERS = 4


class CreativeEngine:
    """
    Drives creative generation for a whole brief.

    Every (product, aspect ratio) pair is one unit. Units run one after the
    other, products outer and ratios inner, with ``pacing_delay`` seconds
    between consecutive units. A failing unit is logged and reported through
    the progress callback; it never stops the run.
    """

    def __init__(
            self,
            settings: Settings,
            image_client: Optional[GenerationClient] = None,
            scene_planner: Optional[ScenePlanner] = None,
            session: Optional[requests.Session] = None,
            sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.image_client = image_client or GenerationClient.from_settings(settings)
        self.scene_planner = scene_planner
        # An injected session is shared by the download threads; without one
        # every download opens and closes its own session.
        self.session = session
        self.pacing_delay = settings.pacing_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
            self,
            brief: CampaignBrief,
            options: GenerationOptions,
            on_progress: Optional[ProgressCallback] = None,
    ) -> RunSummary:
        """
        Generate creatives for every product and ratio in the brief.

        Raises
        ------
        ValidationError
            If the brief is malformed. Nothing is generated in that case.
        FormatError
            If a requested ratio is not in the W:H form.
        """
        validate_brief(brief)
        ratios = self._ratios_for(options)

        output_dir = Path(options.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        if options.use_scene_planner and self.scene_planner is None:
            logging.warning("Scene planning requested but no scene planner configured; using direct prompts.")
        if self.scene_planner is not None:
            # Plans are only reused within a single run.
            self.scene_planner.clear_cache()
            self.scene_planner.cache = options.cache_scene_plans

        logging.info(
            "Generating %d unit(s) for brief '%s' (%d product(s) x ratios %s)",
            len(brief.products) * len(ratios),
            brief.name,
            len(brief.products),
            ", ".join(ratios),
        )

        summary = RunSummary()
        first = True
        for product in brief.products:
            for ratio in ratios:
                if not first:
                    # Courtesy pause between calls to the Firefly API.
                    self._sleep(self.pacing_delay)
                first = False

                progress = self.generate_unit(brief, product, ratio, options)
                summary.units += 1
                summary.files.extend(progress.files)
                if not progress.succeeded:
                    summary.failed_units += 1

                if on_progress is not None:
                    on_progress(progress)

        logging.info(
            "Finished brief '%s': %d/%d unit(s) succeeded, %d file(s) written.",
            brief.name,
            summary.succeeded_units,
            summary.units,
            len(summary.files),
        )
        return summary

    def _ratios_for(self, options: GenerationOptions) -> List[str]:
        if options.expand_unsupported_ratios:
            ratios: List[str] = []
            for ratio in options.aspect_ratios:
                ratio = ratio.strip()
                parse_aspect_ratio(ratio)
                if ratio not in ratios:
                    ratios.append(ratio)
            return ratios

        ratios, _ = resolve_aspect_ratios(options.aspect_ratios)
        return ratios

    # ------------------------------------------------------------------
    # Single unit
    # ------------------------------------------------------------------

    def generate_unit(
            self,
            brief: CampaignBrief,
            product: Product,
            ratio: str,
            options: GenerationOptions,
    ) -> UnitProgress:
        """Generate and download the images for one (product, ratio) pair."""
        logging.debug(
            "Product: '%s' for target region: %s and aspect ratio: %s",
            product.name,
            brief.target_region,
            ratio,
        )
        try:
            prompt = self._prompt_for(brief, product, options)
            logging.debug("  - Generation prompt: %s", prompt)

            result = self._generate(brief, product, ratio, prompt)
            result.raise_for_status()

            out_dir = unit_output_dir(options.output_dir, brief, product, ratio)
            out_dir.mkdir(parents=True, exist_ok=True)
            files = self._download_outputs(result, out_dir, brief, product, ratio)
        except (CreativeGenerationError, requests.RequestException, OSError) as exc:
            logging.error(
                "  - Error generating images for %s [%s]: %s", product.name, ratio, exc
            )
            return UnitProgress(product=product, ratio=ratio, succeeded=False, error=str(exc))
        except Exception as exc:
            # Anything else is unexpected, but still only fails this unit.
            logging.exception(
                "  - Unexpected error generating images for %s [%s]", product.name, ratio
            )
            return UnitProgress(
                product=product,
                ratio=ratio,
                succeeded=False,
                error=f"{type(exc).__name__}: {exc}",
            )

        logging.info(
            "Generated %d image(s) for product %s in %s ratio", len(files), product.name, ratio
        )
        return UnitProgress(product=product, ratio=ratio, succeeded=True, files=tuple(files))

    def _prompt_for(self, brief: CampaignBrief, product: Product, options: GenerationOptions) -> str:
        if options.use_scene_planner and self.scene_planner is not None:
            return self.scene_planner.prompt_for(product, brief)
        return build_prompt(product, brief)

    def _generate(self, brief: CampaignBrief, product: Product, ratio: str, prompt: str) -> JobResult:
        # A cutout image is the only thing that selects the composite path.
        if product.cutout_image is not None:
            return self.image_client.generate_object_composite(prompt, product.cutout_image, ratio)
        return self.image_client.generate_images(prompt, ratio, brief.target_region)

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    def _download_outputs(
            self,
            result: JobResult,
            out_dir: Path,
            brief: CampaignBrief,
            product: Product,
            ratio: str,
    ) -> List[Path]:
        """
        Download every output of a succeeded job concurrently.

        Each output's outcome is captured separately so one failure never
        cancels its siblings. The unit only fails when the job produced no
        outputs or none of them could be written.
        """
        if not result.outputs:
            raise ExternalServiceError(f"No images were generated for job {result.job_id}.")

        tasks: List[Tuple[int, str, Path]] = []
        results: List[DownloadResult] = []
        for idx, output in enumerate(result.outputs):
            if not output.image_url:
                logging.error("  - Error: No image was generated for output #%d.", idx)
                results.append(DownloadResult(index=idx, error="output has no image url"))
                continue
            label = output.seed or idx
            path = out_dir / output_filename(label, brief, product, ratio)
            tasks.append((idx, output.image_url, path))

        results.extend(self._download_all(tasks))
        results.sort(key=lambda r: r.index)

        files = [r.path for r in results if r.ok]
        if not files:
            raise DownloadError(
                f"None of the {len(result.outputs)} output(s) of job {result.job_id} could be saved."
            )
        return files

    def _download_all(self, tasks: Sequence[Tuple[int, str, Path]]) -> List[DownloadResult]:
        if not tasks:
            return []

        def fetch(task: Tuple[int, str, Path]) -> DownloadResult:
            idx, url, path = task
            logging.debug("  - Downloading generated image to: %s", path)
            try:
                if self.session is not None:
                    download_file(url, path, self.session, timeout=self.settings.request_timeout)
                else:
                    with requests.Session() as session:
                        download_file(url, path, session, timeout=self.settings.request_timeout)
            except DownloadError as exc:
                logging.error("  - Error downloading output #%d: %s", idx, exc)
                return DownloadResult(index=idx, error=str(exc))
            return DownloadResult(index=idx, path=path)

        workers = min(MAX_DOWNLOAD_WORKERS, len(tasks))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(fetch, tasks))
