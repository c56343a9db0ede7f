"""
API request and response models for the chapter portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
chapters/models.py, which own the internal domain representation. Route
handlers map between the two.

Field names on the auth envelope are camelCase (sessionToken, chapterId)
because the browser front end reads them directly.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from chapters.models import Activity, ChapterContent

# ---------------------------------------------------------------------------
# Auth envelope
# ---------------------------------------------------------------------------


class AuthActionRequest(BaseModel):
    """Body of POST /api/v1/auth.

    action is a plain string rather than an enum so an unknown action reaches
    the service and gets the same failure envelope as every other bad request.
    Credentials are passed through untouched; login matches them exactly.
    """

    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = Field(default=None, max_length=50)
    username: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)
    session_token: Optional[str] = Field(default=None, alias="sessionToken", max_length=256)


class UserPayload(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    username: str
    email: str
    role: str
    chapter_id: Optional[str] = Field(default=None, alias="chapterId")


class AuthEnvelope(BaseModel):
    """Every response from POST /api/v1/auth, success or failure."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    success: bool
    message: str
    user: Optional[UserPayload] = None
    session_token: Optional[str] = Field(default=None, alias="sessionToken")


# ---------------------------------------------------------------------------
# Chapters
# ---------------------------------------------------------------------------


class ActivityPayload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    id: int
    title: str = Field(default="", max_length=255)
    description: str = Field(default="", max_length=2000)


class ChapterUpdate(BaseModel):
    """Request body for PUT /api/v1/chapters/{chapter_id}.

    The whole record is sent on every save; omitted fields reset to empty.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    title: str = Field(default="", max_length=255)
    description: str = Field(default="", max_length=5000)
    image_url: str = Field(default="", alias="imageUrl", max_length=2000)
    activities: list[ActivityPayload] = Field(default_factory=list, max_length=200)
    members: int = Field(default=0, ge=0)

    def to_content(self, chapter_id: str) -> ChapterContent:
        return ChapterContent(
            chapter_id=chapter_id,
            title=self.title,
            description=self.description,
            image_url=self.image_url,
            activities=[Activity(id=a.id, title=a.title, description=a.description) for a in self.activities],
            members=self.members,
        )


class ChapterResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chapter_id: str = Field(alias="chapterId")
    title: str
    description: str
    image_url: str = Field(alias="imageUrl")
    activities: list[ActivityPayload]
    members: int
    updated_at: str = Field(alias="updatedAt")
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")

    @classmethod
    def from_content(cls, content: ChapterContent) -> "ChapterResponse":
        """Factory Method -- the mapping lives beside the output model, not in the routes."""
        return cls(
            chapter_id=content.chapter_id,
            title=content.title,
            description=content.description,
            image_url=content.image_url,
            activities=[ActivityPayload(id=a.id, title=a.title, description=a.description) for a in content.activities],
            members=content.members,
            updated_at=content.updated_at,
            updated_by=content.updated_by,
        )


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses outside the auth envelope."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
