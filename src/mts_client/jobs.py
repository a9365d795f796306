"""
Publish jobs and their status snapshots.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from mts_client.errors import ParseError, UnexpectedError

if TYPE_CHECKING:
    from mts_client.client import Client


class PublishJobStage(str, Enum):
    """Stage of a publish job as reported by the API."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class JobStatus:
    """Point-in-time status of a publish job."""

    id: str
    stage: PublishJobStage
    created: int = 0
    created_nice: str = ""
    published: int = 0
    tileset_id: str = ""
    errors: list[Any] = field(default_factory=list)
    warnings: list[Any] = field(default_factory=list)
    layer_stats: dict[str, Any] = field(default_factory=dict)

    @property
    def done(self) -> bool:
        """Whether the job reached a terminal stage."""
        return self.stage in (PublishJobStage.SUCCESS, PublishJobStage.FAILED)

    @classmethod
    def from_dict(cls, data: Any) -> "JobStatus":
        """Decode a job status response body."""
        if not isinstance(data, dict):
            raise ParseError(f"expected a JSON object, got {type(data).__name__}")

        try:
            stage = PublishJobStage(data.get("stage"))
        except ValueError as e:
            raise ParseError(f"unknown publish job stage: {data.get('stage')!r}") from e

        errors = data.get("errors") or []
        warnings = data.get("warnings") or []
        layer_stats = data.get("layer_stats") or {}
        if not isinstance(errors, list) or not isinstance(warnings, list):
            raise ParseError("job errors and warnings must be lists")
        if not isinstance(layer_stats, dict):
            raise ParseError("job layer_stats must be an object")

        try:
            return cls(
                id=str(data.get("id", "")),
                stage=stage,
                created=int(data.get("created") or 0),
                created_nice=str(data.get("created_nice") or ""),
                published=int(data.get("published") or 0),
                tileset_id=str(data.get("tileset_id") or ""),
                errors=errors,
                warnings=warnings,
                layer_stats=layer_stats,
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"malformed job status response: {e}") from e


@dataclass(frozen=True)
class PublishJob:
    """
    Handle on a running publish job.

    Returned by ``Client.publish_tileset``. ``job_id`` is empty when the API
    did not report one; such a job cannot be polled.
    """

    tileset: str
    job_id: str
    message: str = ""
    client: "Client | None" = field(default=None, repr=False, compare=False)

    def poll(self) -> JobStatus:
        """Fetch the current status of the job."""
        if self.client is None:
            raise UnexpectedError("job is not bound to a client")
        return self.client.get_job_status(self.tileset, self.job_id)
