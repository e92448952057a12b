"""HTTP client the Streamlit UI uses to reach the Flask backend."""

import logging
from typing import Optional

import requests
from pydantic import ValidationError

from config import get_settings
from pydantic_models import (
    RemedyRequest,
    RemedyResponse,
    SymptomAnalysisRequest,
    SymptomAnalysisResponse,
)

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/api/analyze-symptoms"
REMEDY_PATH = "/api/remedy-recommendation"


class BackendError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BackendClient:
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout

    def _post(self, path: str, payload: dict) -> dict:
        url = self.base_url + path
        logger.debug("POST %s", url)
        try:
            resp = requests.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BackendError(f"Could not reach backend at {url}: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.status_code != 200:
            detail = data.get("error") if isinstance(data, dict) else resp.text[:200]
            raise BackendError(f"{path} failed ({resp.status_code}): {detail}", resp.status_code)
        if not isinstance(data, dict):
            raise BackendError(f"{path} returned a non-JSON body", resp.status_code)
        return data

    def analyze_symptoms(self, request: SymptomAnalysisRequest) -> SymptomAnalysisResponse:
        data = self._post(ANALYZE_PATH, request.to_wire())
        try:
            return SymptomAnalysisResponse.model_validate(data)
        except ValidationError as exc:
            raise BackendError(f"Unexpected analysis payload: {exc}") from exc

    def remedy_recommendation(self, request: RemedyRequest) -> RemedyResponse:
        data = self._post(REMEDY_PATH, request.to_wire())
        try:
            return RemedyResponse.model_validate(data)
        except ValidationError as exc:
            raise BackendError(f"Unexpected remedy payload: {exc}") from exc
