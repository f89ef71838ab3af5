"""Owner-scoped project registry.

ProjectTable is the boundary to the database holding the ``projects`` table;
InMemoryProjectTable is the bundled implementation, with a by-owner secondary
index so listing never scans the whole table.
"""

import logging
import uuid
from typing import Protocol

from gdrive_mcp.errors import UnauthorizedError
from gdrive_mcp.registry.models import Identity, Project

logger = logging.getLogger(__name__)


class ProjectTable(Protocol):
    """Interface for project storage."""

    def insert(self, name: str, owner_id: str) -> str:
        """Insert a project and return its id."""
        ...

    def query_by_owner(self, owner_id: str) -> list[Project]:
        """All projects of one owner, in insertion order."""
        ...


class InMemoryProjectTable:
    """Simple in-memory projects table for development and tests."""

    def __init__(self) -> None:
        self.rows: dict[str, Project] = {}
        self.by_owner: dict[str, list[str]] = {}

    def insert(self, name: str, owner_id: str) -> str:
        project_id = uuid.uuid4().hex
        self.rows[project_id] = Project(id=project_id, name=name, owner_id=owner_id)
        self.by_owner.setdefault(owner_id, []).append(project_id)
        return project_id

    def query_by_owner(self, owner_id: str) -> list[Project]:
        return [self.rows[project_id] for project_id in self.by_owner.get(owner_id, [])]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.rows.clear()
        self.by_owner.clear()


class ProjectRegistry:
    """Create and list projects on behalf of the calling user.

    Creating without an identity is an error; listing without one returns an
    empty list.
    """

    def __init__(self, table: ProjectTable | None = None) -> None:
        self.table: ProjectTable = table or InMemoryProjectTable()

    def create_project(self, identity: Identity | None, name: str) -> str:
        """Create a project owned by the caller.

        Returns:
            The new project's id.

        Raises:
            UnauthorizedError: If there is no authenticated caller.
        """
        if identity is None:
            raise UnauthorizedError()

        project_id = self.table.insert(name, identity.subject)
        logger.debug(f"Created project {project_id} for {identity.subject}")
        return project_id

    def list_projects(self, identity: Identity | None) -> list[Project]:
        """List the caller's projects ([] when unauthenticated)."""
        if identity is None:
            return []
        return self.table.query_by_owner(identity.subject)
