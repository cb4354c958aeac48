"""Local upload storage lookups shared by the transcription providers."""

from pathlib import Path
from typing import Optional

from config import settings

LOCAL_UPLOAD_SCHEME = "local-upload://"

MIME_EXTENSIONS = {
    "audio/webm": ".webm",
    "audio/mp4": ".mp4",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/wav": ".wav",
    "audio/flac": ".flac",
}


def resolve_upload_path(audio_url: Optional[str]) -> Optional[Path]:
    """Map a ``local-upload://<key>`` url onto the upload storage directory.

    Keys that resolve outside the storage directory yield ``None``.
    """
    if not isinstance(audio_url, str) or not audio_url.startswith(LOCAL_UPLOAD_SCHEME):
        return None
    object_key = audio_url[len(LOCAL_UPLOAD_SCHEME):].strip()
    if not object_key:
        return None
    root = Path(settings.UPLOAD_STORAGE_DIR).resolve()
    candidate = (root / object_key).resolve()
    if root not in candidate.parents:
        return None
    return candidate


def mime_to_extension(mime_type: Optional[str]) -> str:
    base = (mime_type or "").lower().split(";")[0].strip()
    return MIME_EXTENSIONS.get(base, ".webm")
