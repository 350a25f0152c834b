"""Exceptions raised by the pruner."""


class PrunerError(Exception):
    """Base class for pruner failures."""


class ConfigurationError(PrunerError):
    """A required setting is missing or invalid."""


class MissingCredentialError(PrunerError):
    """No GitHub token was supplied."""


class ManifestDigestError(PrunerError):
    """The registry did not report a content digest for a tag."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"No Docker-Content-Digest returned for tag '{tag}'")
        self.tag = tag
