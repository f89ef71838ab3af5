"""Owner-scoped project registry."""

from gdrive_mcp.registry.models import Identity, ImportStatus, Project
from gdrive_mcp.registry.projects import InMemoryProjectTable, ProjectRegistry, ProjectTable

__all__ = [
    "Identity",
    "ImportStatus",
    "Project",
    "ProjectRegistry",
    "ProjectTable",
    "InMemoryProjectTable",
]
