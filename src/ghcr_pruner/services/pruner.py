"""Provides pruning of temporary tags for a ghcr.io container package."""

import datetime
import json
import logging
import re
from collections.abc import Iterable

import structlog
from safir.datetime import current_datetime

from ..config import PrunerConfig
from ..models.version import PackageVersion
from ..storage.packages import PackagesClient
from ..storage.registry import RegistryClient

SAMPLE_SIZE = 5


def select_candidates(
    versions: Iterable[PackageVersion],
    pattern: re.Pattern[str],
    cutoff: datetime.datetime,
    protected: set[str],
) -> list[PackageVersion]:
    """Return the versions that may be deleted.

    A version qualifies when at least one of its tags matches ``pattern``,
    it was last updated strictly before ``cutoff``, and its digest is not
    protected.  Input order is preserved.
    """
    return [
        v
        for v in versions
        if any(pattern.search(t) for t in v.tags)
        and v.updated_at < cutoff
        and v.digest not in protected
    ]


class Pruner:
    """Build the protected set, plan deletions, and carry them out.

    The phases run strictly in that order.  A failure in any of them
    (other than a keep tag not being an index) aborts the run; versions
    deleted before the failure stay deleted.
    """

    def __init__(
        self,
        cfg: PrunerConfig,
        registry: RegistryClient | None = None,
        packages: PackagesClient | None = None,
    ) -> None:
        # Establish debugging and dry-run first.
        self._debug = cfg.debug
        self._dry_run = cfg.dry_run

        log_level = logging.DEBUG if self._debug else logging.INFO
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(log_level)
        )
        self._cfg = cfg
        self._registry = registry or RegistryClient(cfg)
        self._packages = packages or PackagesClient(cfg)
        self.name = f"{cfg.registry_url.host}/{cfg.registry_repository}"
        self._protected: set[str] | None = None
        self._versions: list[PackageVersion] | None = None
        self._plan: list[PackageVersion] | None = None
        self._logger = structlog.get_logger(__name__)
        self._logger.debug(f"Initialized logging for pruner {self.name}")

    @property
    def protected(self) -> set[str]:
        return set(self._protected or ())

    @property
    def planned(self) -> list[PackageVersion]:
        return list(self._plan or [])

    def populate(self) -> None:
        """Build the protected digest set, then fetch every version."""
        self._registry.authenticate()
        self._protected = self._registry.protected_digests(
            self._cfg.keep_tags
        )
        self._packages.authenticate()
        self._versions = self._packages.list_versions()
        print(f"raw_total={len(self._versions)}")
        if self._versions:
            print(f"::group::sample({SAMPLE_SIZE}) versions")
            for version in self._versions[:SAMPLE_SIZE]:
                print(json.dumps(version.summary(), separators=(",", ":")))
            print("::endgroup::")

    def plan(self, now: datetime.datetime | None = None) -> None:
        """Select the versions to delete."""
        if self._versions is None or self._protected is None:
            self._logger.warning(
                "Nothing has been populated and thus cannot be planned."
            )
            return
        cutoff = self._cfg.cutoff(now or current_datetime())
        self._logger.debug(f"Retention cutoff is {cutoff.isoformat()}")
        self._plan = select_candidates(
            self._versions,
            self._cfg.temp_tag_regex,
            cutoff,
            self._protected,
        )
        print(f"after_filter={len(self._plan)}")

    def report(self) -> None:
        """Report on versions which would be deleted by plan execution."""
        if self._plan is None:
            self._logger.warning(
                "No plan has been formulated and thus cannot be reported."
            )
            return
        headline = f"Versions to delete for {self.name}:"
        print(headline)
        print("-" * len(headline))
        for version in self._plan:
            print(version)
        print("\n")

    def prune(self) -> int:
        """Delete every planned version, stopping at the first failure.

        Returns the number of deletions issued.
        """
        if self._plan is None:
            self._logger.warning(
                "No plan has been formulated and thus cannot be executed."
            )
            return 0
        if not self._plan:
            print("Nothing to delete.")
            return 0
        dry = " (not really)" if self._dry_run else ""
        deleted = 0
        for version in self._plan:
            self._logger.debug(f"Deleting version {version}{dry}")
            if not self._dry_run:
                self._packages.delete_version(version.id)
            deleted += 1
        if self._dry_run:
            self._logger.info(f"Deleted {deleted} versions{dry}")
        else:
            print(f"Deleted={deleted}")
            self._plan = None
        return deleted

    def close(self) -> None:
        self._registry.close()
        self._packages.close()

    def run(self, now: datetime.datetime | None = None) -> int:
        """Run every phase once, then close the HTTP clients."""
        try:
            self.populate()
            self.plan(now)
            if self._dry_run:
                self.report()
            return self.prune()
        finally:
            self.close()
