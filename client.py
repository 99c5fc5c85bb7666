import json
import logging
from typing import Any, Optional

import requests

from errors import BackendError, ConfigurationError
from models import Exercise

logger = logging.getLogger(__name__)


def _first(*values):
    for value in values:
        if value:
            return value
    return None


def _as_list(plural, singular) -> Optional[list[str]]:
    if isinstance(plural, list) and plural:
        return plural
    if singular:
        return [singular]
    return None


def exercise_from_api(data: dict) -> Exercise:
    """Map one search API record, tolerating singular and plural field names."""
    instructions = data.get("instructions")
    if isinstance(instructions, list):
        description = " ".join(str(i) for i in instructions)
    else:
        description = instructions or "No description provided."
    targets = _as_list(data.get("targetMuscles"), data.get("target"))
    body_parts = _as_list(data.get("bodyParts"), data.get("bodyPart"))
    return Exercise(
        name=data.get("name") or "Unnamed exercise",
        description=description,
        muscle=_first(targets and targets[0], body_parts and body_parts[0]),
        type=_first(
            data.get("exerciseType"),
            body_parts and body_parts[0],
            data.get("target"),
        ),
        image_url=_first(data.get("imageUrl"), data.get("gifUrl")),
        video_url=data.get("videoUrl") or None,
        targets=targets,
        secondary_targets=_as_list(
            data.get("secondaryMuscles"), data.get("secondaryMuscle")
        ),
        body_parts=body_parts,
        equipments=_as_list(data.get("equipments"), data.get("equipment")),
    )


class ExerciseDbClient:
    """Client for the third-party exercise search API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://exercisedb-api1.p.rapidapi.com/api/v1",
        host: str = "exercisedb-api1.p.rapidapi.com",
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.host = host

    def search(self, query: str) -> list[Exercise]:
        if not self.api_key:
            raise ConfigurationError(
                "Missing API key. Set EXERCISEDB_KEY (or exercisedb_key in settings.yaml)."
            )
        try:
            resp = requests.get(
                f"{self.base_url}/exercises/search",
                params={"search": query},
                headers={
                    "X-RapidAPI-Key": self.api_key,
                    "X-RapidAPI-Host": self.host,
                },
            )
            resp.raise_for_status()
            payload = resp.json()
        except requests.HTTPError as e:
            logger.warning("exercise search for %r failed: %s", query, e)
            raise BackendError(
                f"API error {e.response.status_code}", "catalog.search"
            ) from e
        except (requests.RequestException, ValueError) as e:
            logger.warning("exercise search for %r failed: %s", query, e)
            raise BackendError("Failed to load exercises", "catalog.search") from e
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list):
            payload = []
        return [exercise_from_api(item) for item in payload if isinstance(item, dict)]


class DocumentStoreClient:
    """Minimal HTTP client for the hosted document store query/mutate API."""

    def __init__(
        self,
        project_id: str,
        dataset: str = "production",
        api_version: str = "2023-10-12",
        token: str = "",
    ) -> None:
        self.project_id = project_id
        self.dataset = dataset
        self.api_version = api_version.lstrip("v")
        self.token = token

    @property
    def base_url(self) -> str:
        return f"https://{self.project_id}.api.sanity.io/v{self.api_version}/data"

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def query(self, groq: str, params: dict | None = None) -> Any:
        if not self.project_id:
            raise ConfigurationError("Set SANITY_PROJECT_ID to use the document store.")
        query_params = {"query": groq}
        for name, value in (params or {}).items():
            query_params[f"${name}"] = json.dumps(value)
        try:
            resp = requests.get(
                f"{self.base_url}/query/{self.dataset}",
                params=query_params,
                headers=self._headers(),
            )
            resp.raise_for_status()
            return resp.json().get("result")
        except (requests.RequestException, ValueError) as e:
            logger.warning("document query failed: %s", e)
            raise BackendError("Document store query failed", "document.query") from e

    def mutate(self, mutations: list[dict]) -> list[str]:
        """Apply ``mutations`` atomically and return the affected document ids."""
        if not (self.project_id and self.token):
            raise ConfigurationError(
                "Set SANITY_PROJECT_ID and SANITY_TOKEN to write to the document store."
            )
        try:
            resp = requests.post(
                f"{self.base_url}/mutate/{self.dataset}",
                params={"returnIds": "true"},
                json={"mutations": mutations},
                headers=self._headers(),
            )
            resp.raise_for_status()
            results = resp.json().get("results", [])
        except (requests.RequestException, ValueError) as e:
            logger.warning("document mutation failed: %s", e)
            raise BackendError("Document store write failed", "document.mutate") from e
        return [r.get("id") for r in results if r.get("id")]
