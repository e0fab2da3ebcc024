from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import requests

from .errors import DownloadError
from .models import CampaignBrief, Product

DOWNLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Output layout
# ---------------------------------------------------------------------------


def unit_output_dir(
        output_root: Union[str, Path],
        brief: CampaignBrief,
        product: Product,
        ratio: str,
) -> Path:
    """<output_root>/<brief>/<region>/<product>/<ratio>"""
    return Path(output_root) / brief.name / brief.target_region / product.name / ratio


def output_filename(
        label: Union[int, str],
        brief: CampaignBrief,
        product: Product,
        ratio: str,
) -> str:
    """
    File name for one generated output.

    ``label`` is the output's seed, or its index when the service did not
    report a seed.
    """
    return f"{label}-{brief.name}-{brief.target_region}-{product.name}-{ratio}.jpg"


# ---------------------------------------------------------------------------
# Downloads
# ---------------------------------------------------------------------------


def download_file(
        url: str,
        path: Path,
        session: requests.Session,
        timeout: float = 60.0,
) -> Path:
    """
    Stream ``url`` to ``path``. Raises DownloadError on any failure.

    Bytes go to a ``.part`` sibling first, so ``path`` only ever holds a
    complete download.
    """
    part_path = path.with_name(path.name + ".part")
    try:
        with session.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            with open(part_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
        part_path.replace(path)
    except (requests.RequestException, OSError) as exc:
        _discard(part_path)
        raise DownloadError(f"Failed to download {url} to {path}: {exc}") from exc

    logging.debug("Downloaded %s", path)
    return path


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logging.warning("Could not remove partial download %s: %s", path, exc)
