"""Registry constants

Centralized names for the on-disk layout and descriptor fields so the storage
and HTTP layers agree on them.
"""

# On-disk layout: <root>/packages/<pkg>/meta.json and <root>/packages/<pkg>/tarballs/<file>
PACKAGES_DIR = "packages"
DESCRIPTOR_FILENAME = "meta.json"
ARTIFACTS_DIR = "tarballs"

# Prefix for in-flight descriptor and artifact writes (renamed over the final path)
TEMP_FILE_MARKER = ".tmp-"

# Descriptor fields
FIELD_NAME = "name"
FIELD_VERSIONS = "versions"
FIELD_DIST_TAGS = "dist-tags"
FIELD_DIST = "dist"
FIELD_TARBALL = "tarball"

LATEST_TAG = "latest"

# Version used when an upload arrives for a package without a "latest" dist-tag
FALLBACK_VERSION = "0.0.0"

# Chunk size for streaming artifact bytes in and out of the store
STREAM_CHUNK_SIZE = 64 * 1024

# Characters encodeURIComponent leaves unescaped beyond quote()'s defaults
URL_COMPONENT_SAFE = "!*'()"
