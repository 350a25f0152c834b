"""Client for the OCI distribution API at ghcr.io.

We only need enough of it to turn keep tags into manifest digests: a pull
token, the index manifest (for child digests), and a HEAD request (for the
tag's own digest).
"""

import json

import httpx
import structlog

from ..config import PrunerConfig
from ..exceptions import ManifestDigestError
from ..models.manifest import ACCEPT_ANY_MANIFEST, ACCEPT_INDEX, DIGEST_HEADER


class RegistryClient:
    """Resolve tags to digests in one ghcr.io repository."""

    def __init__(
        self, cfg: PrunerConfig, http_client: httpx.Client | None = None
    ) -> None:
        self._url = str(cfg.registry_url).rstrip("/")
        self._repository = cfg.registry_repository
        self._actor = cfg.actor
        self._token = cfg.token
        self._http_client = http_client or httpx.Client(
            follow_redirects=True
        )
        self._logger = structlog.get_logger(__name__)

    def authenticate(self) -> None:
        """Exchange the GitHub token for a registry pull token.

        Neither token is logged.
        """
        url = f"{self._url}/token"
        password = self._token.get_secret_value() if self._token else ""
        r = self._http_client.get(
            url,
            params={"scope": f"repository:{self._repository}:pull"},
            auth=(self._actor, password),
        )
        r.raise_for_status()
        self._http_client.headers["authorization"] = (
            f"Bearer {r.json()['token']}"
        )
        self._logger.debug(f"Obtained pull token for {self._repository}")

    def _manifest_url(self, tag: str) -> str:
        return f"{self._url}/v2/{self._repository}/manifests/{tag}"

    def get_index_children(self, tag: str) -> list[str] | None:
        """Return child manifest digests if ``tag`` is a multi-platform
        index, or None if it is not (or the registry won't serve one).
        """
        r = self._http_client.get(
            self._manifest_url(tag), headers={"accept": ACCEPT_INDEX}
        )
        if r.is_error:
            self._logger.debug(
                f"Tag '{tag}' has no index manifest (HTTP {r.status_code})"
            )
            return None
        if not r.content:
            self._logger.debug(f"Tag '{tag}' returned an empty manifest")
            return None
        try:
            obj = r.json()
        except json.JSONDecodeError:
            self._logger.debug(f"Tag '{tag}' returned a non-JSON manifest")
            return None
        if not isinstance(obj, dict) or "manifests" not in obj:
            self._logger.debug(f"Tag '{tag}' is a single-platform manifest")
            return None
        if not isinstance(obj["manifests"], list):
            self._logger.debug(f"Tag '{tag}' has a malformed manifest list")
            return None
        children = [
            m["digest"]
            for m in obj["manifests"]
            if isinstance(m, dict) and m.get("digest")
        ]
        self._logger.debug(f"Tag '{tag}' is an index of {len(children)}")
        return children

    def get_digest(self, tag: str) -> str:
        """Return the digest the registry reports for ``tag``.

        For an index this is the index's own digest.
        """
        r = self._http_client.head(
            self._manifest_url(tag), headers={"accept": ACCEPT_ANY_MANIFEST}
        )
        r.raise_for_status()
        digest = r.headers.get(DIGEST_HEADER, "").strip()
        if not digest:
            raise ManifestDigestError(tag)
        return digest

    def protected_digests(self, keep_tags: list[str]) -> set[str]:
        """Every digest reachable from the keep tags."""
        protected: set[str] = set()
        for tag in keep_tags:
            children = self.get_index_children(tag)
            if children is not None:
                protected.update(children)
            protected.add(self.get_digest(tag))
        self._logger.info(
            f"Protecting {len(protected)} digests for {len(keep_tags)} tags"
        )
        return protected

    def close(self) -> None:
        self._http_client.close()
