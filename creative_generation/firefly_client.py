"""
Direct HTTP client for the Adobe Firefly Services API.

Exposes exactly the operations the pipeline needs: submit an async
generation job, submit an async object composite job, read a job's status,
upload an image, and list custom models. Authentication uses the IMS
client-credentials flow; the access token is cached until shortly before it
expires.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import requests

from .config import Settings
from .errors import ExternalServiceError

# Refresh the IMS token this many seconds before it actually expires.
TOKEN_EXPIRY_MARGIN = 60


class FireflyClient:
    """Thin JSON-over-HTTP wrapper around the Firefly v2/v3 endpoints."""

    def __init__(
            self,
            settings: Settings,
            session: Optional[requests.Session] = None,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.base_url = settings.firefly_base_url.rstrip("/")
        self.session = session or requests.Session()
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _access_token(self) -> str:
        if self._token and self._clock() < self._token_expires_at:
            return self._token

        logging.debug("Requesting Firefly access token from IMS.")
        try:
            response = self.session.post(
                self.settings.ims_token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.settings.firefly_client_id,
                    "client_secret": self.settings.firefly_client_secret,
                    "scope": self.settings.firefly_scopes,
                },
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as exc:
            raise ExternalServiceError(f"Firefly authentication failed: {exc}") from exc

        if response.status_code != 200:
            raise ExternalServiceError(
                f"Firefly authentication failed ({response.status_code}): "
                f"{response.text[:200]}"
            )

        try:
            body = response.json()
            token = body["access_token"]
            expires_in = float(body.get("expires_in", 3600))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise ExternalServiceError(
                f"Firefly authentication returned no usable access token: {response.text[:200]}"
            ) from exc

        self._token = token
        self._token_expires_at = self._clock() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN)
        return self._token

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token()}",
            "x-api-key": self.settings.firefly_client_id,
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
            self,
            method: str,
            path: str,
            *,
            json_body: Optional[Dict[str, Any]] = None,
            data: Optional[bytes] = None,
            params: Optional[Dict[str, str]] = None,
            headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=json_body,
                data=data,
                params=params,
                headers=self._headers(headers),
                timeout=self.settings.request_timeout,
            )
        except requests.RequestException as exc:
            raise ExternalServiceError(f"Firefly request {method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            detail = response.text[:500]
            try:
                body = response.json()
                detail = body.get("message") or body.get("error_code") or detail
            except ValueError:
                pass
            raise ExternalServiceError(
                f"Firefly {method} {path} returned {response.status_code}: {detail}"
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                f"Firefly {method} {path} returned a non-JSON body"
            ) from exc

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def generate_images_async(
            self,
            request_body: Dict[str, Any],
            model_version: Optional[str] = None,
    ) -> str:
        """POST /v3/images/generate-async and return the job id."""
        headers = {"x-model-version": model_version} if model_version else None
        body = self._request(
            "POST", "/v3/images/generate-async", json_body=request_body, headers=headers
        )
        return _job_id(body)

    def generate_object_composite_async(self, request_body: Dict[str, Any]) -> str:
        """POST /v3/images/generate-object-composite-async and return the job id."""
        body = self._request(
            "POST", "/v3/images/generate-object-composite-async", json_body=request_body
        )
        return _job_id(body)

    def get_job_status(self, job_id: str) -> Dict[str, Any]:
        """GET /v3/status/{jobId}."""
        return self._request("GET", f"/v3/status/{quote(job_id, safe='')}")

    def upload_image(self, content: bytes, content_type: str = "image/png") -> str:
        """POST /v2/storage/image with binary content and return the upload id."""
        body = self._request(
            "POST",
            "/v2/storage/image",
            data=content,
            headers={"Content-Type": content_type},
        )
        images = body.get("images") or []
        upload_id = images[0].get("id") if images else None
        if not upload_id:
            raise ExternalServiceError("Firefly upload response did not contain an image id")
        return upload_id

    def list_custom_models(self, **query: str) -> Dict[str, Any]:
        """GET /v3/custom-models. Accepts sortBy, start, limit and publishedState."""
        params = {k: v for k, v in query.items() if v}
        return self._request("GET", "/v3/custom-models", params=params or None)


def _job_id(body: Dict[str, Any]) -> str:
    job_id = body.get("jobId")
    if not job_id:
        raise ExternalServiceError("Firefly did not return a jobId for the submitted job")
    return job_id
