"""
HTTP client for the bracket persistence API.

Plain request/response, no timeout and no retry: a failed call raises
PersistenceFailure and the caller decides whether to try again. Any object
with a requests-style ``request(method, url, json=...)`` works as transport,
which lets tests hand in FastAPI's TestClient.
"""
import logging
import os
from typing import Any, List, Optional

import requests

from fixturedesk.schemas import (
    BracketResponse,
    BracketRound,
    CreateFixturesResponse,
    GenerateBracketResponse,
    ResetBracketResponse,
    SaveBracketsRequest,
    SaveBracketsResponse,
    TournamentSummary,
)
from fixturedesk.services.bracket_errors import PersistenceFailure

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000/api"


def _error_detail(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)


class BracketApiClient:
    def __init__(self, base_url: Optional[str] = None, http: Any = None):
        self.base_url = (base_url or os.getenv("BRACKET_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.http = http if http is not None else requests.Session()

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=payload)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise PersistenceFailure(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, detail)
            raise PersistenceFailure(detail, status_code=response.status_code)
        if not response.content:
            return None
        return response.json()

    def get_tournament(self, tournament_id: int) -> TournamentSummary:
        return TournamentSummary.model_validate(self._request("GET", f"/tournaments/{tournament_id}"))

    def generate_bracket(self, tournament_id: int) -> List[BracketRound]:
        data = self._request("POST", f"/tournaments/{tournament_id}/bracket/generate")
        return GenerateBracketResponse.model_validate(data).rounds

    def save_brackets(self, tournament_id: int, rounds: List[BracketRound]) -> SaveBracketsResponse:
        payload = SaveBracketsRequest(rounds=rounds).model_dump(mode="json")
        data = self._request("POST", f"/tournaments/{tournament_id}/bracket/save", payload)
        return SaveBracketsResponse.model_validate(data)

    def create_fixtures(self, tournament_id: int) -> CreateFixturesResponse:
        data = self._request("POST", f"/tournaments/{tournament_id}/bracket/fixtures")
        return CreateFixturesResponse.model_validate(data)

    def reset_bracket(self, tournament_id: int) -> ResetBracketResponse:
        data = self._request("POST", f"/tournaments/{tournament_id}/bracket/reset")
        return ResetBracketResponse.model_validate(data)

    def get_bracket(self, tournament_id: int) -> List[BracketRound]:
        data = self._request("GET", f"/tournaments/{tournament_id}/bracket")
        return BracketResponse.model_validate(data).rounds
