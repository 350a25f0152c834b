from enum import Enum


class OwnerType(Enum):
    """GitHub account types.  Package endpoints live under a different
    path prefix for organizations and for users.
    """

    ORGANIZATION = "Organization"
    USER = "User"

    def path_prefix(self, owner: str) -> str:
        if self == OwnerType.ORGANIZATION:
            return f"/orgs/{owner}"
        return f"/users/{owner}"
