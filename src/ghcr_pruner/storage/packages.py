"""Client for the GitHub Packages REST API.

We must be able to list container package versions, with their digests,
tags and dates, and to delete versions by ID.
"""

from collections.abc import Iterator

import httpx
import structlog

from ..config import PrunerConfig
from ..models.owner_type import OwnerType
from ..models.version import JSONVersion, PackageVersion

PAGE_SIZE = 100


class PackagesClient:
    """Storage client for container package versions at api.github.com."""

    def __init__(
        self, cfg: PrunerConfig, http_client: httpx.Client | None = None
    ) -> None:
        self._url = str(cfg.api_url).rstrip("/")
        self._owner = cfg.namespace
        self._image = cfg.image
        self._token = cfg.token
        self._http_client = http_client or httpx.Client()
        self._http_client.headers.update(
            {
                "accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )
        self._owner_type: OwnerType | None = None
        self._logger = structlog.get_logger(__name__)

    def authenticate(self) -> None:
        """Use the GitHub token as a bearer token."""
        token = self._token.get_secret_value() if self._token else ""
        self._http_client.headers["authorization"] = f"Bearer {token}"

    def owner_type(self) -> OwnerType:
        """Ask whether the owner is an organization or a user."""
        if self._owner_type is None:
            r = self._http_client.get(f"{self._url}/users/{self._owner}")
            r.raise_for_status()
            if r.json().get("type") == OwnerType.ORGANIZATION.value:
                self._owner_type = OwnerType.ORGANIZATION
            else:
                self._owner_type = OwnerType.USER
            self._logger.debug(
                f"Owner '{self._owner}' is a {self._owner_type.value}"
            )
        return self._owner_type

    def _versions_url(self) -> str:
        prefix = self.owner_type().path_prefix(self._owner)
        return f"{self._url}{prefix}/packages/container/{self._image}/versions"

    def iter_version_pages(self) -> Iterator[list[JSONVersion]]:
        """Yield each page of raw version records, following the ``next``
        link until there is none.
        """
        url: str | None = self._versions_url()
        params: dict[str, int] | None = {"per_page": PAGE_SIZE}
        page = 1
        while url:
            self._logger.debug(
                f"Requesting {self._owner}/{self._image}: versions page {page}"
            )
            r = self._http_client.get(url, params=params)
            r.raise_for_status()
            yield r.json()
            # The next link already carries the query string.
            url = r.links.get("next", {}).get("url")
            params = None
            page += 1

    def list_versions(self) -> list[PackageVersion]:
        """All versions of the package, every page merged in order."""
        versions: list[PackageVersion] = []
        for page in self.iter_version_pages():
            versions.extend(PackageVersion.from_api(v) for v in page)
        self._logger.debug(f"Found {len(versions)} versions")
        return versions

    def delete_version(self, version_id: int) -> None:
        url = f"{self._versions_url()}/{version_id}"
        r = self._http_client.delete(url)
        r.raise_for_status()
        self._logger.debug(f"Version {version_id} deleted")

    def close(self) -> None:
        self._http_client.close()
