"""
Client for the Mapbox Tiling Service (MTS) REST API.
"""

import io
import json
import warnings
from typing import Any, BinaryIO
from urllib.parse import quote

import requests
from loguru import logger

from mts_client.config import DEFAULT_BASE_URL, ENV_ACCESS_TOKEN, ENV_USERNAME, Settings
from mts_client.errors import (
    MissingJobIdWarning,
    NotFoundError,
    OperationError,
    ParseError,
    TilesetAPIError,
    UnexpectedError,
    ValidationError,
)
from mts_client.jobs import JobStatus, PublishJob
from mts_client.multipart import MultipartStreamError, send_multipart
from mts_client.recipe import TilesetRecipe, recipe_payload
from mts_client.sources import TilesetSourceSummary

Recipe = TilesetRecipe | dict[str, Any]


class Client:
    """
    Create tileset sources, tilesets and publish jobs on Mapbox.

    The client holds the account credentials and an HTTP session. It never
    talks to the API on construction and is read-only afterwards, so one
    instance can serve independent calls.

    Tileset ids may be given with or without the ``username.`` prefix; the
    prefix is added before every request.
    """

    def __init__(
        self,
        access_token: str,
        username: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            access_token: Mapbox access token with the tilesets scopes.
            username: Mapbox username owning the tilesets.
            base_url: API root, overridable for testing.
            session: HTTP session to use; a new one is created if omitted.
            timeout: Timeout in seconds applied to every request.
        """
        if not username:
            raise ValidationError("username is required")
        if not access_token:
            raise ValidationError("access token is required")

        self._access_token = access_token
        self._username = username
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    @classmethod
    def from_env(cls, session: requests.Session | None = None) -> "Client":
        """Create a client from ``MAPBOX_ACCESS_TOKEN`` and ``MAPBOX_USERNAME``."""
        settings = Settings.from_env()
        if not settings.access_token:
            raise ValidationError(
                "Mapbox access token required. "
                f"Set {ENV_ACCESS_TOKEN} environment variable or pass access_token parameter."
            )
        if not settings.username:
            raise ValidationError(
                "Mapbox username required. "
                f"Set {ENV_USERNAME} environment variable or pass username parameter."
            )
        return cls(
            settings.access_token,
            settings.username,
            base_url=settings.base_url,
            session=session,
            timeout=settings.timeout,
        )

    @property
    def username(self) -> str:
        return self._username

    @property
    def access_token(self) -> str:
        return self._access_token

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def __repr__(self) -> str:
        return f"Client(username={self._username!r}, base_url={self._base_url!r})"

    def qualify(self, tileset: str) -> str:
        """Return ``tileset`` prefixed with ``username.`` unless it already is."""
        if not tileset:
            raise ValidationError("tileset is required")
        prefix = f"{self._username}."
        if tileset.startswith(prefix):
            return tileset
        return prefix + tileset

    # Tileset sources

    def create_tileset_source(
        self,
        source_id: str,
        data: BinaryIO | bytes,
        filename: str = "features.ldgeojson",
    ) -> TilesetSourceSummary:
        """Create a tileset source. Same as ``put_tileset_source``."""
        return self.put_tileset_source(source_id, data, filename=filename)

    def put_tileset_source(
        self,
        source_id: str,
        data: BinaryIO | bytes,
        filename: str = "features.ldgeojson",
    ) -> TilesetSourceSummary:
        """
        Create a tileset source, or replace it if it already exists.

        The data is streamed to the API as it is read, so ``data`` may be a
        file of any size.

        Args:
            source_id: Source id, unique per user.
            data: Readable binary stream (or bytes) with one GeoJSON feature per line.
            filename: File name announced in the multipart body.

        Returns:
            Summary of the stored source.
        """
        if not source_id:
            raise ValidationError("source_id is required")
        if isinstance(data, (bytes, bytearray)):
            data = io.BytesIO(data)

        url = self._url("sources", self._username, source_id)
        logger.debug(f"PUT {url} (multipart)")
        try:
            resp = send_multipart(
                self._session,
                "PUT",
                url,
                data,
                filename=filename,
                params=self._params(),
                timeout=self._timeout,
            )
        except (requests.RequestException, MultipartStreamError) as e:
            raise OperationError(f"upload failed, {self._redact(e)}") from e

        if resp.status_code != 200:
            raise OperationError(
                f"upload failed, non-200 response: {resp.status_code}",
                status_code=resp.status_code,
            )

        summary = TilesetSourceSummary.from_dict(self._decode(resp, "upload"))
        logger.info(f"Uploaded source {summary.id} ({summary.file_size} bytes)")
        return summary

    def list_tileset_sources(self) -> list[dict[str, Any]]:
        """List the tileset sources of the user."""
        resp = self._request("GET", self._url("sources", self._username), action="list sources")
        if resp.status_code != 200:
            raise OperationError(
                f"list sources failed, status {resp.status_code}", status_code=resp.status_code
            )
        return self._decode_list(resp, "list sources")

    def delete_tileset_source(self, source_id: str) -> None:
        """Delete a tileset source."""
        if not source_id:
            raise ValidationError("source_id is required")
        resp = self._request(
            "DELETE", self._url("sources", self._username, source_id), action="delete source"
        )
        if resp.status_code == 404:
            raise NotFoundError(f"tileset source {source_id} not found")
        if resp.status_code not in (200, 204):
            raise OperationError(
                f"delete source failed, status {resp.status_code}", status_code=resp.status_code
            )
        logger.info(f"Deleted source {source_id}")

    # Tilesets

    def upsert_tileset(
        self,
        tileset: str,
        recipe: Recipe,
        *,
        name: str | None = None,
        description: str | None = None,
        attribution: list[dict[str, str]] | None = None,
        private: bool | None = None,
    ) -> None:
        """
        Create a tileset, or replace its recipe if it already exists.

        Creation is attempted first; when the API reports that the tileset
        already exists, the recipe is updated instead.

        Args:
            tileset: Tileset id, with or without the ``username.`` prefix.
            recipe: Recipe as a ``TilesetRecipe`` or a raw JSON dict.
            name: Display name; defaults to the tileset id without the prefix.
            description: Optional description.
            attribution: Optional list of ``{"text": ..., "link": ...}`` entries.
            private: Optional privacy flag.
        """
        tileset = self.qualify(tileset)

        body: dict[str, Any] = {
            "name": name or tileset[len(self._username) + 1 :],
            "recipe": recipe_payload(recipe),
        }
        if description:
            body["description"] = description
        if attribution:
            body["attribution"] = attribution
        if private is not None:
            body["private"] = private

        resp = self._request("POST", self._url(tileset), payload=body, action="create tileset")
        if resp.status_code == 200:
            logger.info(f"Created tileset {tileset}")
            return

        error = self._api_error(resp, "create tileset")
        # The API answers a create of an existing tileset with a conflict
        # message rather than a dedicated status.
        if "already exists" in error.message:
            logger.info(f"Tileset {tileset} already exists, updating its recipe")
            self.update_tileset_recipe(tileset, recipe)
            return
        raise error

    def update_tileset_recipe(self, tileset: str, recipe: Recipe) -> None:
        """Replace the recipe of an existing tileset."""
        tileset = self.qualify(tileset)
        resp = self._request(
            "PATCH",
            self._url(tileset, "recipe"),
            payload=recipe_payload(recipe),
            action="update recipe",
        )
        if resp.status_code == 204:
            logger.info(f"Updated recipe of {tileset}")
            return
        raise self._api_error(resp, "update recipe")

    def publish_tileset(self, tileset: str) -> PublishJob:
        """
        Start a publish job for a tileset.

        Returns:
            A ``PublishJob`` that can be polled for its status. Its ``job_id``
            is empty, and ``MissingJobIdWarning`` is emitted, if the API did
            not report a job id.
        """
        tileset = self.qualify(tileset)
        resp = self._request("PATCH", self._url(tileset, "publish"), action="publish tileset")

        if resp.status_code == 404:
            raise NotFoundError(f"tileset {tileset} not found")
        if not 200 <= resp.status_code < 300:
            raise self._api_error(resp, "publish tileset")

        data = self._decode(resp, "publish tileset")
        if not isinstance(data, dict):
            raise ParseError("publish tileset response is not a JSON object")

        # The API has used both spellings for the job id.
        job_id = data.get("jobId") or data.get("job_id") or ""
        if not job_id:
            logger.warning(f"Publish response for {tileset} has no job id")
            warnings.warn(
                f"publish response for {tileset} has no job id",
                MissingJobIdWarning,
                stacklevel=2,
            )
        else:
            logger.info(f"Publishing {tileset}, job {job_id}")

        return PublishJob(
            tileset=tileset,
            job_id=str(job_id),
            message=str(data.get("message") or ""),
            client=self,
        )

    def get_job_status(self, tileset: str, job_id: str) -> JobStatus:
        """Fetch the status of a publish job."""
        tileset = self.qualify(tileset)
        if not job_id:
            raise ValidationError("job id is required")

        resp = self._request("GET", self._url(tileset, "jobs", job_id), action="poll job")
        if resp.status_code == 404:
            raise NotFoundError(f"job {job_id} of tileset {tileset} not found")
        if resp.status_code != 200:
            raise OperationError(
                f"poll job failed, status {resp.status_code}", status_code=resp.status_code
            )
        return JobStatus.from_dict(self._decode(resp, "job status"))

    def list_tilesets(self) -> list[dict[str, Any]]:
        """List the tilesets of the user."""
        resp = self._request("GET", self._url(self._username), action="list tilesets")
        if resp.status_code != 200:
            raise OperationError(
                f"list tilesets failed, status {resp.status_code}", status_code=resp.status_code
            )
        return self._decode_list(resp, "list tilesets")

    def delete_tileset(self, tileset: str) -> None:
        """Delete a tileset."""
        tileset = self.qualify(tileset)
        resp = self._request("DELETE", self._url(tileset), action="delete tileset")
        if resp.status_code == 404:
            raise NotFoundError(f"tileset {tileset} not found")
        if resp.status_code not in (200, 204):
            raise OperationError(
                f"delete tileset failed, status {resp.status_code}", status_code=resp.status_code
            )
        logger.info(f"Deleted tileset {tileset}")

    # Helpers

    def _url(self, *parts: str) -> str:
        path = "/".join(quote(part, safe="") for part in parts)
        return f"{self._base_url}/tilesets/v1/{path}"

    def _redact(self, exc: BaseException) -> str:
        """Return the message of ``exc`` with the access token masked."""
        return str(exc).replace(self._access_token, "***")

    def _params(self) -> dict[str, str]:
        return {"access_token": self._access_token}

    def _request(
        self,
        method: str,
        url: str,
        payload: Any = None,
        action: str = "request",
    ) -> requests.Response:
        """Send a request with an optional JSON body."""
        headers: dict[str, str] = {}
        body: str | None = None
        if payload is not None:
            try:
                body = json.dumps(payload)
            except (TypeError, ValueError) as e:
                raise UnexpectedError(f"failed to encode {action} request body: {e}") from e
            headers["Content-Type"] = "application/json"

        logger.debug(f"{method} {url}")
        try:
            return self._session.request(
                method,
                url,
                params=self._params(),
                data=body,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise OperationError(f"{action} failed, {self._redact(e)}") from e

    @staticmethod
    def _decode(resp: requests.Response, action: str) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ParseError(f"parsing {action} response failed, {e}") from e

    def _decode_list(self, resp: requests.Response, action: str) -> list[dict[str, Any]]:
        data = self._decode(resp, action)
        if not isinstance(data, list):
            raise ParseError(f"{action} response is not a JSON array")
        return data

    def _api_error(self, resp: requests.Response, action: str) -> TilesetAPIError:
        """Decode a ``{message, errors}`` error body."""
        data = self._decode(resp, action)
        if not isinstance(data, dict):
            raise ParseError(f"{action} error response is not a JSON object")
        errors = data.get("errors") or []
        if not isinstance(errors, list):
            errors = [errors]
        return TilesetAPIError(
            str(data.get("message") or ""),
            [str(e) for e in errors],
            status_code=resp.status_code,
        )
