from __future__ import annotations
"""Helpers for classifying and formatting stored files."""
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, metadata, version

DIST_NAME = "storage-browser"

PREVIEW_TYPES = ("video", "audio", "image", "markdown", "code", "text", "pdf", "unknown")

_PREVIEW_EXTENSIONS = {
    "video": {"mp4", "webm", "ogv", "mov", "m4v", "mkv"},
    "audio": {"mp3", "wav", "ogg", "oga", "flac", "aac", "m4a", "opus"},
    "image": {"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "ico", "avif"},
    "markdown": {"md", "markdown", "mdx"},
    "pdf": {"pdf"},
    "text": {"txt", "log", "csv", "tsv", "ini", "cfg", "conf", "env"},
}

CODE_LANGUAGES = {
    "py": "python",
    "js": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "json": "json",
    "html": "xml",
    "htm": "xml",
    "xml": "xml",
    "css": "css",
    "scss": "scss",
    "java": "java",
    "kt": "kotlin",
    "go": "go",
    "rs": "rust",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "hpp": "cpp",
    "cs": "csharp",
    "rb": "ruby",
    "php": "php",
    "sh": "bash",
    "bash": "bash",
    "yml": "yaml",
    "yaml": "yaml",
    "toml": "ini",
    "sql": "sql",
    "swift": "swift",
    "lua": "lua",
}


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name="Storage Browser",
            version="",
            summary="Browse S3 and WebDAV storages and report their usage.",
        )
    return PackageInfo(
        name=distribution_metadata.get("Name"),
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )


def get_file_extension(name: str) -> str:
    """Return the lower-cased extension of ``name``, or ``""`` when it has none.

    Dot-files such as ``.env`` count as having no extension.
    """

    leaf = name.rstrip("/").rpartition("/")[2]
    stem, dot, extension = leaf.rpartition(".")
    if not dot or not stem or not extension:
        return ""
    return extension.lower()


def get_file_type(name: str) -> str:
    """Classify ``name`` into one of :data:`PREVIEW_TYPES` for the preview UI."""

    extension = get_file_extension(name)
    if not extension:
        return "unknown"
    for preview_type, extensions in _PREVIEW_EXTENSIONS.items():
        if extension in extensions:
            return preview_type
    if extension in CODE_LANGUAGES:
        return "code"
    return "unknown"


def get_code_language(name: str) -> str:
    return CODE_LANGUAGES.get(get_file_extension(name), "plaintext")


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"

