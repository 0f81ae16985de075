"""Pydantic schemas for resource submissions and moderation.

Python attributes are snake_case; JSON on the wire is camelCase
(``userAgent``, ``adminNote``, ``nextCursor``) via an alias generator.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated
from urllib.parse import urlsplit

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class SubmissionStatus(str, Enum):
    """Moderation status of a submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


Tag = Annotated[StrictStr, StringConstraints(strip_whitespace=True, min_length=1, max_length=40)]
Discipline = Annotated[StrictStr, StringConstraints(strip_whitespace=True, min_length=2, max_length=20)]


class CaptchaChallenge(BaseModel):
    """Arithmetic challenge-response sent along with a submission.

    Only deters naive bots; it is not a security control.
    """

    a: int
    b: int
    op: StrictStr = "+"
    answer: int

    @model_validator(mode="after")
    def _check_answer(self) -> "CaptchaChallenge":
        if self.op != "+" or self.answer != self.a + self.b:
            raise ValueError("captcha answer does not match")
        return self


class SubmissionPayload(BaseModel):
    """Public submission body, validated and normalized.

    Field order is the order in which failures are reported: the first
    failing field names the error.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: StrictStr = Field(..., min_length=2, max_length=120)
    url: StrictStr
    description: StrictStr = Field("", max_length=2000)
    contact: StrictStr = Field("", max_length=200)
    tags: list[Tag] = Field(default_factory=list, max_length=20)
    disciplines: list[Discipline] = Field(default_factory=list, max_length=20)
    page: StrictStr = Field("", max_length=2000)
    captcha: CaptchaChallenge

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        try:
            parts = urlsplit(value)
        except ValueError as exc:
            raise ValueError("url is not parseable") from exc
        if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
            raise ValueError("url must be an absolute http(s) URL")
        return value


class StatusUpdate(BaseModel):
    """Admin request to move one submission to a new status."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: StrictStr = Field(..., min_length=1)
    status: SubmissionStatus
    note: StrictStr | None = None


class SubmissionRecord(CamelModel):
    """A stored submission with its moderation state."""

    id: str
    name: str
    url: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    disciplines: list[str] = Field(default_factory=list)
    contact: str = ""
    page: str = ""
    ip: str = ""
    user_agent: str = ""
    ts: datetime
    status: SubmissionStatus = SubmissionStatus.PENDING
    admin_note: str = ""
    admin_at: datetime | None = None


class SubmitResponse(CamelModel):
    ok: bool = True
    id: str


class SubmissionListResponse(CamelModel):
    """Page of submissions for the admin list endpoint."""

    ok: bool = True
    items: list[SubmissionRecord]
    next_cursor: str | None = Field(
        None,
        description="Opaque cursor to pass back for the next page (null when the page is empty).",
    )
    complete: bool = Field(
        ...,
        description="True when fewer items than requested were returned (end of results).",
    )


class StatusUpdateResponse(CamelModel):
    ok: bool = True
    id: str
    status: SubmissionStatus
