from __future__ import annotations

"""
Helpers for loading a campaign brief from YAML or JSON into the immutable
CampaignBrief and Product dataclasses.

Documents use the camelCase keys of the original brief format (targetRegion,
targetAudience, campaignMessage, cutoutImage); snake_case spellings are
accepted as well. Shape and locale checks live in validation.validate_brief.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ValidationError
from .models import CampaignBrief, Product


def _field(data: Dict[str, Any], camel: str, snake: str, default: Any = "") -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _resolve_cutout(value: Any, assets_dir: Path) -> Optional[Path]:
    if not value:
        return None
    cutout = Path(str(value)).expanduser()
    if not cutout.is_absolute():
        cutout = assets_dir / cutout
    return cutout.resolve()


def brief_from_dict(raw: Any, assets_dir: Union[str, Path, None] = None) -> CampaignBrief:
    """
    Construct a CampaignBrief from an already deserialized document.

    Relative cutout image paths are resolved against ``assets_dir``, or the
    current working directory when it is not given.
    """
    if not isinstance(raw, dict):
        raise ValidationError(["brief document must be a mapping of fields"])

    base = Path(assets_dir) if assets_dir is not None else Path.cwd()

    products_data = raw.get("products") or []
    if not isinstance(products_data, list):
        raise ValidationError(["products must be a list"])

    products = []
    for idx, p in enumerate(products_data):
        if not isinstance(p, dict):
            raise ValidationError([f"products[{idx}] must be a mapping"])
        products.append(
            Product(
                name=p.get("name", ""),
                description=p.get("description", ""),
                cutout_image=_resolve_cutout(
                    _field(p, "cutoutImage", "cutout_image", None), base
                ),
            )
        )

    return CampaignBrief(
        name=raw.get("name", ""),
        target_region=_field(raw, "targetRegion", "target_region"),
        target_audience=_field(raw, "targetAudience", "target_audience"),
        campaign_message=_field(raw, "campaignMessage", "campaign_message"),
        products=tuple(products),
    )


def load_brief(
        path: Union[str, Path],
        assets_dir: Union[str, Path, None] = None,
) -> CampaignBrief:
    """
    Load a campaign brief from a YAML or JSON file.

    Parameters
    ----------
    path:
        Filesystem path to the brief document. ``.yml`` and ``.yaml`` files
        are parsed as YAML, anything else as JSON.
    assets_dir:
        Directory that relative ``cutoutImage`` paths are resolved against.

    Returns
    -------
    CampaignBrief
        Parsed brief. It has not been validated yet.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Brief file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        if path.suffix.lower() in {".yml", ".yaml"}:
            raw = yaml.safe_load(f)
        else:
            raw = json.load(f)

    return brief_from_dict(raw, assets_dir=assets_dir)
