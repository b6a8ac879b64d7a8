# In src/file_uploader/schemas.py

from typing import Annotated, Any, Literal, TypedDict, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ErrorKind

# --- Static Type Hinting (for mypy and IDEs) ---


class SlackShareDict(TypedDict, total=False):
    """One entry of a file's `shares.public[channel]` / `shares.private[channel]` list."""

    ts: str
    channel_name: str
    thread_ts: str


# --- Runtime Validation (using Pydantic) ---


class FileRef(BaseModel):
    """A file attached to a Slack message, as returned by the Web API."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Files hidden by workspace limits come without a download URL; they fail
    # individually at download time instead of invalidating the whole message.
    remote_url: str = Field("", alias="url_private")
    declared_size: int = Field(0, alias="size", ge=0)
    declared_mime_type: str = Field("application/octet-stream", alias="mimetype")
    display_name: str = Field("", alias="name")


class FileMessage(BaseModel):
    """
    The original message that attached the files, keyed by its timestamp.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ts: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1)
    files: list[FileRef] = Field(default_factory=list)
    channel: str | None = None


class FileSharedEvent(BaseModel):
    """The inner `file_shared` event of a Slack event callback."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["file_shared"] = "file_shared"
    file_id: str = Field(..., min_length=1)
    channel_id: str = Field(..., min_length=1)
    event_ts: str
    user_id: str | None = None


class SlackEventEnvelope(BaseModel):
    """Outer Events API payload: either a url_verification or an event_callback."""

    model_config = ConfigDict(extra="ignore")

    type: str
    challenge: str | None = None
    event_id: str | None = None
    team_id: str | None = None
    event: dict[str, Any] | None = None


# --- Upload outcomes ---


class UploadSucceeded(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["succeeded"] = "succeeded"
    original_name: str
    stored_name: str
    stored_url: str
    content_type: str


class UploadFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    original_name: str
    error_kind: ErrorKind
    reason: str = ""


UploadOutcome = Annotated[
    Union[UploadSucceeded, UploadFailed], Field(discriminator="status")
]


class BatchResult(BaseModel):
    """
    Per-message aggregate of upload outcomes. Both lists keep the relative
    order of the input files.
    """

    model_config = ConfigDict(frozen=True)

    succeeded: list[UploadSucceeded] = Field(default_factory=list)
    failed: list[UploadFailed] = Field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: list[UploadOutcome]) -> "BatchResult":
        return cls(
            succeeded=[o for o in outcomes if isinstance(o, UploadSucceeded)],
            failed=[o for o in outcomes if isinstance(o, UploadFailed)],
        )

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    @property
    def failed_names(self) -> list[str]:
        return [f.original_name for f in self.failed]


class RemoteUploadResult(BaseModel):
    """Response body of the single-URL ingestion path."""

    url: str
    sha: str
    size: int
    type: str | None = None
