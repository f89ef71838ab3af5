"""Data models for the project registry."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ImportStatus(str, Enum):
    """Progress of a project's import."""

    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"


class Identity(BaseModel):
    """Authenticated caller as reported by the identity provider.

    Attributes:
        subject: Stable user identifier; becomes a project's owner_id.
    """

    model_config = ConfigDict(frozen=True)

    subject: str


class Project(BaseModel):
    """A row of the projects table.

    Frozen: owner_id never changes after creation.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    owner_id: str = Field(alias="ownerId")
    import_status: ImportStatus | None = Field(default=None, alias="importStatus")
