"""Artifact resources consumed by deployers.

Resolving artifacts from coordinates (package repositories, registries) is
handled outside of AppDeck. Deployers only need a :class:`Resource` that can
materialize the artifact as a readable local file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class Resource(ABC):
    """A deployable artifact that can be materialized on the local host."""

    @abstractmethod
    def get_file(self) -> Path:
        """Return the absolute path of a local, readable copy of the artifact.

        Raises:
            OSError: If the artifact cannot be materialized locally.
        """

    @property
    def description(self) -> str:
        """Human readable description used in log messages."""
        return type(self).__name__

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description})"


class FileSystemResource(Resource):
    """Resource backed by a file that already exists on the local filesystem."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def description(self) -> str:
        return str(self._path)

    def get_file(self) -> Path:
        """Return the resolved file path, failing if it is not a regular file."""
        resolved = self._path.expanduser().resolve()
        if not resolved.is_file():
            raise FileNotFoundError(f"Artifact file does not exist: {resolved}")
        return resolved

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileSystemResource):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)
