"""Test fixtures for the ghcr.io pruner."""

import base64
import datetime
import json
from collections.abc import Callable
from copy import deepcopy
from pathlib import Path
from typing import Any

import httpx
import pytest

from ghcr_pruner.config import PrunerConfig
from ghcr_pruner.models.manifest import DIGEST_HEADER, INDEX_MEDIA_TYPES
from ghcr_pruner.services.pruner import Pruner
from ghcr_pruner.storage.packages import PackagesClient
from ghcr_pruner.storage.registry import RegistryClient

NOW = datetime.datetime(2024, 6, 15, 12, 0, 0, tzinfo=datetime.UTC)
REGISTRY_TOKEN = "registry-pull-token"
GITHUB_TOKEN = "gho_not_a_real_token"


class FakeGhcr:
    """In-memory stand-in for ghcr.io and the GitHub Packages API."""

    def __init__(self, versions: list[dict[str, Any]]) -> None:
        self.owner_type = "Organization"
        self.page_size = 3
        self.versions = versions
        self.manifests: dict[str, dict[str, Any]] = {
            "latest": {
                "digest": "sha256:idx1",
                "children": ["sha256:d1", "sha256:d2"],
            },
            "main": {"digest": "sha256:single1", "children": None},
        }
        self.fail_ids: set[int] = set()
        self.deleted: list[int] = []
        self.requests: list[httpx.Request] = []
        self.unreachable = False

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError(
                "Name or service not known", request=request
            )
        if request.url.host == "ghcr.io":
            return self._registry(request)
        return self._api(request)

    def _registry(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/token":
            expected = base64.b64encode(
                f"octocat:{GITHUB_TOKEN}".encode()
            ).decode()
            if request.headers.get("authorization") != f"Basic {expected}":
                return httpx.Response(401)
            return httpx.Response(200, json={"token": REGISTRY_TOKEN})
        if request.headers.get("authorization") != f"Bearer {REGISTRY_TOKEN}":
            return httpx.Response(401)
        tag = path.rsplit("/", 1)[-1]
        manifest = self.manifests.get(tag)
        if manifest is None:
            return httpx.Response(404, json={"errors": []})
        headers = {}
        if not manifest.get("no_digest_header"):
            headers[DIGEST_HEADER] = manifest["digest"]
        if request.method == "HEAD":
            return httpx.Response(200, headers=headers)
        if manifest.get("get_status"):
            return httpx.Response(manifest["get_status"])
        if "raw_body" in manifest:
            return httpx.Response(
                200, content=manifest["raw_body"], headers=headers
            )
        if manifest["children"] is None:
            body: dict[str, Any] = {
                "schemaVersion": 2,
                "config": {"digest": "sha256:config"},
                "layers": [],
            }
        else:
            body = {
                "schemaVersion": 2,
                "mediaType": INDEX_MEDIA_TYPES[0],
                "manifests": [{"digest": d} for d in manifest["children"]],
            }
        return httpx.Response(200, json=body, headers=headers)

    def _api(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") != f"Bearer {GITHUB_TOKEN}":
            return httpx.Response(401)
        path = request.url.path
        if path == "/users/octo-org":
            return httpx.Response(200, json={"type": self.owner_type})
        prefix = (
            "/orgs/octo-org"
            if self.owner_type == "Organization"
            else "/users/octo-org"
        )
        base = f"{prefix}/packages/container/widget/versions"
        if path == base and request.method == "GET":
            return self._page(request)
        if path.startswith(base + "/") and request.method == "DELETE":
            version_id = int(path.rsplit("/", 1)[-1])
            if version_id in self.fail_ids:
                return httpx.Response(500)
            self.versions = [v for v in self.versions if v["id"] != version_id]
            self.deleted.append(version_id)
            return httpx.Response(204)
        return httpx.Response(404)

    def _page(self, request: httpx.Request) -> httpx.Response:
        per_page = min(
            int(request.url.params.get("per_page", 30)), self.page_size
        )
        page = int(request.url.params.get("page", 1))
        start = (page - 1) * per_page
        chunk = self.versions[start : start + per_page]
        headers = {}
        if start + per_page < len(self.versions):
            next_url = request.url.copy_merge_params({"page": page + 1})
            headers["link"] = f'<{next_url}>; rel="next"'
        return httpx.Response(200, json=chunk, headers=headers)

    def delete_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "DELETE"]


@pytest.fixture(scope="session")
def support_versions() -> list[dict[str, Any]]:
    """Package versions as returned by the GitHub API."""
    support_dir = Path(__file__).parent / "support"
    return json.loads((support_dir / "versions.json").read_text())


@pytest.fixture
def ghcr(support_versions: list[dict[str, Any]]) -> FakeGhcr:
    """Fake registry and package API."""
    return FakeGhcr(deepcopy(support_versions))


@pytest.fixture
def env() -> dict[str, str]:
    """Environment as a scheduled workflow would set it."""
    return {
        "REPO": "Octo-Org/Widget",
        "OWNER": "Octo-Org",
        "KEEP_TAGS": "latest main",
        "RETENTION_DAYS": "3",
        "TEMP_TAG_REGEX": "^[0-9a-f]{7,40}-(amd64|arm64)$",
        "GITHUB_TOKEN": GITHUB_TOKEN,
        "GITHUB_ACTOR": "octocat",
    }


@pytest.fixture
def cfg(env: dict[str, str]) -> PrunerConfig:
    """Configuration for the fake package."""
    return PrunerConfig.from_env(env)


@pytest.fixture
def registry_client(cfg: PrunerConfig, ghcr: FakeGhcr) -> RegistryClient:
    """Registry client talking to the fake."""
    return RegistryClient(
        cfg, http_client=httpx.Client(transport=ghcr.transport())
    )


@pytest.fixture
def packages_client(cfg: PrunerConfig, ghcr: FakeGhcr) -> PackagesClient:
    """Packages client talking to the fake."""
    return PackagesClient(
        cfg, http_client=httpx.Client(transport=ghcr.transport())
    )


@pytest.fixture
def make_pruner(ghcr: FakeGhcr) -> Callable[[PrunerConfig], Pruner]:
    """Build pruners whose clients talk to the fake."""

    def _make(cfg: PrunerConfig) -> Pruner:
        return Pruner(
            cfg,
            registry=RegistryClient(
                cfg, http_client=httpx.Client(transport=ghcr.transport())
            ),
            packages=PackagesClient(
                cfg, http_client=httpx.Client(transport=ghcr.transport())
            ),
        )

    return _make
