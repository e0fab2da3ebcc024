# cli.py
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import yaml
from dotenv import load_dotenv

from .aspect_ratios import is_valid_aspect_ratio
from .brief_loader import load_brief
from .config import Settings
from .errors import CreativeGenerationError
from .models import GenerationOptions, UnitProgress
from .processor import CreativeEngine
from .scene_planner import ScenePlanner

LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
DEFAULT_RATIOS = ["1:1", "16:9"]


def parse_ratio_list(value: str) -> List[str]:
    """argparse type for a comma-separated list of W:H ratios."""
    ratios = [r.strip() for r in value.split(",") if r.strip()]
    invalid = [r for r in ratios if not is_valid_aspect_ratio(r)]
    if invalid or not ratios:
        raise argparse.ArgumentTypeError(
            f"Invalid aspect ratio(s): {', '.join(invalid) or value!r}. Each must be "
            "in the format number:number (e.g. 1:1, 16:9)."
        )
    return ratios


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="creative-generation",
        description="Automate creative asset generation from a campaign brief.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser(
        "generate",
        help="Generate creative assets based on a campaign brief.",
    )
    generate.add_argument(
        "brief",
        type=Path,
        help="Path to the campaign brief YAML or JSON file.",
    )
    generate.add_argument(
        "-i",
        "--input",
        type=Path,
        default=None,
        help="Directory that relative cutoutImage paths are resolved against. "
             "Defaults to the current working directory.",
    )
    generate.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("outputs"),
        help="Directory where generated creatives will be written.",
    )
    generate.add_argument(
        "-r",
        "--aspect-ratios",
        type=parse_ratio_list,
        default=list(DEFAULT_RATIOS),
        help="Comma-separated list of aspect ratios to generate. Supported: "
             "1:1, 4:3, 3:4, 16:9, 7:4, 9:7, 7:9. Any other ratio is "
             "approximated to the closest supported one.",
    )
    generate.add_argument(
        "-l",
        "--log-level",
        default="info",
        help="Log level. One of: error, warning, info, debug.",
    )
    generate.add_argument(
        "--log",
        type=Path,
        default=None,
        help="Optional path to a log file.",
    )
    generate.add_argument(
        "--scene-plan",
        action="store_true",
        help="Ask Gemini for a scene plan and use its prompt for generation.",
    )
    generate.add_argument(
        "--cache-scene-plans",
        action="store_true",
        help="Reuse one scene plan per product across all aspect ratios.",
    )
    generate.add_argument(
        "--expand-ratios",
        action="store_true",
        help="Render unsupported ratios at an area-preserving exact size "
             "instead of approximating them.",
    )
    generate.add_argument(
        "--max-wait",
        type=float,
        default=None,
        help="Give up on a job after this many seconds of polling.",
    )

    # If no arguments were supplied, show the help screen instead of failing
    # with a cryptic missing argument error.
    if argv is None and len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)

    return parser.parse_args(argv)


def configure_logging(level_name: str, log_path: Optional[Path] = None) -> None:
    """
    Configure logging to stderr and optionally to a file.

    Unknown level names fall back to info with a warning.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    level = LOG_LEVELS.get(level_name.lower())
    logging.basicConfig(
        level=level if level is not None else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        handlers=handlers,
    )
    if level is None:
        logging.warning(
            "Invalid log level '%s'. Allowed values are: %s. Defaulting to 'info'.",
            level_name,
            ", ".join(LOG_LEVELS),
        )


def report_progress(progress: UnitProgress) -> None:
    if progress.succeeded:
        logging.info(
            "Generated creative assets for Product: %s in %s ratio",
            progress.product.name,
            progress.ratio,
        )
    else:
        logging.warning(
            "Failed to generate creative assets for Product: %s in %s ratio",
            progress.product.name,
            progress.ratio,
        )


def run_generate(args: argparse.Namespace) -> int:
    settings = Settings.from_env(max_wait=args.max_wait)

    logging.info("Loading campaign brief from %s", args.brief)
    brief = load_brief(args.brief, assets_dir=args.input)

    scene_planner = None
    if args.scene_plan:
        scene_planner = ScenePlanner.from_settings(settings, cache=args.cache_scene_plans)

    engine = CreativeEngine(settings, scene_planner=scene_planner)
    options = GenerationOptions(
        output_dir=args.output.resolve(),
        aspect_ratios=args.aspect_ratios,
        use_scene_planner=args.scene_plan,
        cache_scene_plans=args.cache_scene_plans,
        expand_unsupported_ratios=args.expand_ratios,
    )

    summary = engine.run(brief, options, on_progress=report_progress)
    if summary.failed_units:
        logging.warning(
            "%d of %d unit(s) failed; see the log above for details.",
            summary.failed_units,
            summary.units,
        )
    logging.info("Creative assets generated and saved to: %s", options.output_dir)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Entry point for the creative-generation command.

    - Loads a .env file if present.
    - Parses the brief and builds the engine from the environment.
    - Exits non-zero on configuration, validation or other run-fatal errors.
    """
    args = parse_args(argv)
    configure_logging(args.log_level, args.log)
    load_dotenv()

    try:
        return run_generate(args)
    except (CreativeGenerationError, OSError, ValueError, yaml.YAMLError) as exc:
        logging.error("Creative generation failed: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
