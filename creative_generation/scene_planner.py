# scene_planner.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Tuple

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from google import genai
from google.genai import types

from .config import Settings
from .errors import ConfigError, ExternalServiceError
from .models import CampaignBrief, Product


MAX_PROMPT_LENGTH = 1024


# ---------------------------------------------------------------------------
# Scene plan schema
# ---------------------------------------------------------------------------


class Camera(BaseModel):
    angle: Literal["eye", "low", "high", "top", "three-quarter"]
    focal_length_mm: float
    fov_deg: float


class ScenePlan(BaseModel):
    """Structured, literal description of the scene a product is placed into."""

    concept: str = Field(description="Concept description")
    environment: str = Field(description="Environment description")
    surface: str = Field(description="Surface description")
    color_grade: str = Field(description="Color grade description")
    background: str = Field(description="Backdrop description")
    lighting: str = Field(description="Lighting description")
    camera: Camera
    props: List[str]
    negative_cues: List[str]
    compliance_notes: str
    rationale: str
    image_generation_prompt: str = Field(max_length=MAX_PROMPT_LENGTH)


SYSTEM_INSTRUCTION = (
    "You turn marketing briefs into explicit, literal, and detailed scene plans "
    "for object composition of product cutouts. "
    "The scene plan should be detailed enough to be used as a prompt for a photo "
    "generation model. The scene plan must not mention the product itself, only "
    "the scene and the props. "
    "Bias the scene plan towards the provided target region, which is a "
    "hyphen-separated string combining the ISO 639-1 language code and the "
    "ISO 3166-1 region (e.g., en-US). "
    "The image_generation_prompt must be a single sentence describing the image "
    f"and no longer than {MAX_PROMPT_LENGTH} characters. "
    "Only output JSON that strictly matches the provided schema. "
    "The canvas origin is the center; units are centimeters."
)


def build_user_message(product: Product, brief: CampaignBrief) -> str:
    return (
        f"BRIEF:\n{brief.campaign_message}\n"
        "Constraints: social-first asset, exclude glassware and alcohol cues.\n"
        f"Product Name: {product.name}\n"
        f"Product Description: {product.description}\n"
        f"Target region: {brief.target_region}"
    )


def parse_scene_plan(raw: str) -> ScenePlan:
    """Validate a JSON response against the ScenePlan schema."""
    raw = (raw or "").strip()
    if not raw:
        raise ExternalServiceError("Scene planner returned an empty response.")
    try:
        return ScenePlan.model_validate_json(raw)
    except SchemaValidationError as exc:
        logging.debug("Raw scene plan response (truncated): %s", raw[:500])
        raise ExternalServiceError(
            f"Scene planner returned content that does not match the schema: "
            f"{exc.error_count()} error(s)"
        ) from exc


class ScenePlanner:
    """
    Asks Gemini for a ScenePlan for a (product, brief) pair.

    Optionally caches one plan per product so every aspect ratio of the same
    product reuses it.
    """

    def __init__(self, client: Any, model: str, cache: bool = False):
        self.client = client
        self.model = model
        self.cache = cache
        self._plans: Dict[Tuple[str, str, str], ScenePlan] = {}

    @classmethod
    def from_settings(cls, settings: Settings, cache: bool = False) -> "ScenePlanner":
        if not settings.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY or GOOGLE_API_KEY must be set for scene planning.")

        client = genai.Client(api_key=settings.gemini_api_key)
        logging.info("Initialized Gemini client for scene planning (%s).", settings.scene_model)
        return cls(client, settings.scene_model, cache=cache)

    def _config(self) -> "types.GenerateContentConfig":
        return types.GenerateContentConfig(
            system_instruction=SYSTEM_INSTRUCTION,
            response_mime_type="application/json",
            response_schema=ScenePlan,
        )

    def plan(self, product: Product, brief: CampaignBrief) -> ScenePlan:
        key = (brief.name, product.name, product.description)
        if self.cache and key in self._plans:
            logging.debug("Reusing cached scene plan for %s", product.name)
            return self._plans[key]

        logging.info("Requesting scene plan for product=%s region=%s", product.name, brief.target_region)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=build_user_message(product, brief),
                config=self._config(),
            )
        except Exception as exc:
            raise ExternalServiceError(f"Scene planning request failed: {exc}") from exc

        plan = parse_scene_plan(getattr(response, "text", "") or "")
        logging.debug("Scene plan concept for %s: %s", product.name, plan.concept)

        if self.cache:
            self._plans[key] = plan
        return plan

    def clear_cache(self) -> None:
        """Forget every cached plan."""
        self._plans.clear()

    def prompt_for(self, product: Product, brief: CampaignBrief) -> str:
        return self.plan(product, brief).image_generation_prompt
