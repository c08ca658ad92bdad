"""Drive file reference helpers.

A stored reference is either a bare Drive file id or a Drive URL that embeds
one.  Anything else (external links, blanks) is "not a Drive file" and the
asset pipeline never deletes it.

is_drive_file:   True for a bare id or any drive.google.com URL
file_id_from:    id from a bare id or a /file/d/<id> | /d/<id> URL, else None
preview_path:    in-app image proxy path for an id/URL
direct_url:      public view / download / uc URL for an id
"""
import re

DRIVE_URL_PATTERN = re.compile(r"drive\.google\.com")
FILE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
DRIVE_FILE_PATH_PATTERN = re.compile(r"/(?:file/)?d/([a-zA-Z0-9_-]+)")

DIRECT_URL_TEMPLATES = {
    "view": "https://drive.google.com/file/d/{file_id}/view",
    "download": "https://drive.google.com/uc?export=download&id={file_id}",
    "uc": "https://drive.google.com/uc?export=view&id={file_id}",
}


def is_valid_file_id(value) -> bool:
    return bool(value) and bool(FILE_ID_PATTERN.match(str(value)))


def is_drive_url(value) -> bool:
    return bool(value) and bool(DRIVE_URL_PATTERN.search(str(value)))


def is_drive_file(value) -> bool:
    """Return True when *value* looks like a Drive id or Drive URL."""
    if not value:
        return False
    return is_drive_url(value) or is_valid_file_id(value)


def file_id_from(value):
    """Extract the Drive file id from a bare id or a Drive URL.

    Returns None for empty input, non-Drive URLs and Drive URLs without a
    recognisable file path.
    """
    if not value:
        return None
    value = str(value).strip()
    if is_valid_file_id(value):
        return value
    if not is_drive_url(value):
        return None
    match = DRIVE_FILE_PATH_PATTERN.search(value)
    return match.group(1) if match else None


def preview_path(value) -> str:
    file_id = file_id_from(value)
    return f"/api/drive-image?fileId={file_id}" if file_id else ""


def direct_url(file_id, export_type="view") -> str:
    """Build a public Drive URL. Unknown export types fall back to ``view``."""
    if not is_valid_file_id(file_id):
        return ""
    template = DIRECT_URL_TEMPLATES.get(export_type, DIRECT_URL_TEMPLATES["view"])
    return template.format(file_id=file_id)
