"""
Content-Type lookup for uploaded objects.

Players fetch HLS/DASH renditions straight from the replica buckets, so
each object must carry the right Content-Type. The mapping is plain data;
add an extension here rather than branching in the upload path.
"""

from pathlib import PurePath

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: dict[str, str] = {
    ".m3u8": "application/vnd.apple.mpegurl",  # HLS playlist
    ".ts": "video/mp2t",                       # HLS segment
    ".mp4": "video/mp4",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".mpd": "application/dash+xml",            # DASH manifest
}


def resolve_content_type(path: str) -> str:
    """Return the MIME type for a file path based on its extension."""
    suffix = PurePath(path).suffix.lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE)
