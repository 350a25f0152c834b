"""Media types used for manifest content negotiation."""

INDEX_MEDIA_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
)

MANIFEST_MEDIA_TYPES = (
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
)

ACCEPT_INDEX = ", ".join(INDEX_MEDIA_TYPES)
ACCEPT_ANY_MANIFEST = ", ".join(INDEX_MEDIA_TYPES + MANIFEST_MEDIA_TYPES)

DIGEST_HEADER = "Docker-Content-Digest"
