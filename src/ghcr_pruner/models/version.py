"""Model for a ghcr.io package version."""

import datetime
from dataclasses import dataclass, field
from typing import Any, Self

from safir.datetime import parse_isodatetime

type JSONVersion = dict[str, Any]


@dataclass
class PackageVersion:
    """One version of a container package, as the GitHub Packages API sees
    it.

    The API calls the manifest digest the version's ``name``.  The ``id``
    is what you need to delete it.
    """

    id: int
    digest: str
    updated_at: datetime.datetime
    tags: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        tags = ",".join(self.tags) if self.tags else "<untagged>"
        return f"{self.id} [{tags}] {self.digest}"

    @classmethod
    def from_api(cls, obj: JSONVersion) -> Self:
        """Build from an element of the ``.../versions`` response."""
        metadata = obj.get("metadata") or {}
        container = metadata.get("container") or {}
        tags = container.get("tags") or []
        return cls(
            id=obj["id"],
            digest=obj["name"],
            # GHCR reports whole seconds in UTC with a trailing 'Z'
            updated_at=parse_isodatetime(obj["updated_at"]),
            tags=list(tags),
        )

    def summary(self) -> JSONVersion:
        return {
            "id": self.id,
            "updated_at": self.updated_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "tags": self.tags,
        }
