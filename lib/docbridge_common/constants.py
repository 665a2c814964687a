"""
Constants used throughout DocBridge.

Centralizes hostnames, limits and table layout names so the webhook,
pipeline and storage layers agree on them.
"""

# =============================================================================
# Source Service
# =============================================================================

# Base path for all source service API requests (no trailing slash)
SOURCE_API_BASE = "https://api.airstory.co/v1"

# Hosts that serve media embedded in exported documents
DEFAULT_SIDELOAD_DOMAINS = ("images.airstory.co", "res.cloudinary.com")

# Origins allowed to read webhook responses
DEFAULT_ALLOWED_ORIGINS = ("https://app.airstory.co",)

# Path prefix that precedes the modifier segment, per image host family
IMAGE_HOST_FAMILIES = {
    "images.airstory.co": "",
    "res.cloudinary.com": "/airstory/image/upload",
}

# Canonical path of an untransformed asset, relative to the family prefix
ORIGINAL_ASSET_PATH = "/v1/prod/"


# =============================================================================
# Timeouts (in seconds)
# =============================================================================

# Document metadata and content requests
SOURCE_API_TIMEOUT = 15.0

# Media downloads during sideloading
MEDIA_DOWNLOAD_TIMEOUT = 30.0

# Stop sideloading when less than this much Lambda time remains
MEDIA_PASS_SAFETY_MARGIN_MS = 10000


# =============================================================================
# Media Limits
# =============================================================================

# Maximum image file size (10 MB)
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024

# Supported image MIME types mapped to file extensions
SUPPORTED_IMAGE_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
}

# Chunk size used when streaming downloads to disk
DOWNLOAD_CHUNK_SIZE = 64 * 1024


# =============================================================================
# DynamoDB Layout
# =============================================================================

# GSI on the content table: hash source_key, range created_at
SOURCE_DOCUMENT_INDEX = "SourceDocumentIndex"

# Reserved content-table key holding the record id counter
RECORD_COUNTER_KEY = 0

# Prefix for sideloaded media objects in the media bucket
MEDIA_KEY_PREFIX = "media"


# =============================================================================
# CMS
# =============================================================================

# Default admin base URL used to build edit links
DEFAULT_ADMIN_URL = "https://cms.example.com/wp-admin"
