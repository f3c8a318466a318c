from __future__ import annotations
"""Parsing of WebDAV PROPFIND multi-status responses into listing results.

WebDAV servers disagree on namespace aliases for the ``DAV:`` elements
(``D:href``, ``d:href``, ``lp1:getlastmodified`` or a bare ``href`` under a
default namespace). Every lookup in this module therefore goes through
:func:`local_name`, which compares tags by their local name only.
"""
import logging
from typing import Iterator, Optional, Union
from urllib.parse import unquote, urlsplit

from lxml import etree

from .errors import ParseError
from .models import ListedEntry, ListingResult, sort_entries

LOGGER = logging.getLogger(__name__)

PROPFIND_BODY = """<?xml version="1.0" encoding="utf-8" ?>
<D:propfind xmlns:D="DAV:">
  <D:prop>
    <D:displayname/>
    <D:getcontentlength/>
    <D:getlastmodified/>
    <D:resourcetype/>
    <D:getetag/>
  </D:prop>
</D:propfind>"""


def local_name(tag: object) -> str:
    """Return the lower-cased tag name without namespace URI or alias."""

    if not isinstance(tag, str):
        # comments and processing instructions
        return ""
    if tag.startswith("{"):
        tag = tag.partition("}")[2]
    return tag.rpartition(":")[2].lower()


def iter_named(element, name: str) -> Iterator:
    """Yield the descendants of ``element`` whose local name is ``name``."""

    for child in element.iterdescendants():
        if local_name(child.tag) == name:
            yield child


def find_named(element, name: str):
    return next(iter_named(element, name), None)


def find_text(element, name: str) -> Optional[str]:
    found = find_named(element, name)
    if found is None:
        return None
    return found.text or ""


def strip_leading_segments(path: str, prefix: str) -> str:
    """Remove ``prefix`` from the front of ``path`` when it matches whole segments.

    The comparison is case-insensitive.
    """

    if not prefix:
        return path
    prefix_parts = [part.lower() for part in prefix.split("/")]
    parts = path.split("/")
    if [part.lower() for part in parts[: len(prefix_parts)]] != prefix_parts:
        return path
    return "/".join(parts[len(prefix_parts):])


def parse_propfind_response(
    xml: Union[str, bytes],
    full_prefix: str,
    display_prefix: str,
    *,
    endpoint_path: str = "",
    base_path: str = "",
) -> ListingResult:
    """Convert a depth-1 PROPFIND response into a :class:`ListingResult`.

    :param xml:             the multi-status response body
    :param full_prefix:     the queried collection path relative to the endpoint,
                            base path included
    :param display_prefix:  the queried path as the caller sees it (relative to
                            the base path); it is prepended to every returned key
    :param endpoint_path:   the URL path of the configured endpoint
    :param base_path:       the configured base path

    WebDAV has no listing pagination, so the result is never truncated.
    """

    root = _parse_document(xml)
    if root is None:
        return ListingResult()

    endpoint_path = endpoint_path.strip("/")
    base_path = base_path.strip("/")
    entries: list[ListedEntry] = []
    for response in iter_named(root, "response"):
        try:
            entry = _parse_response(
                response,
                full_prefix=full_prefix,
                display_prefix=display_prefix,
                endpoint_path=endpoint_path,
                base_path=base_path,
            )
        except ParseError as exc:
            LOGGER.debug("Skipping PROPFIND entry: %s", exc)
            continue
        if entry is not None:
            entries.append(entry)

    ordered = sort_entries(entries)
    return ListingResult(
        entries=ordered,
        directory_names=[entry.name for entry in ordered if entry.is_directory],
        is_truncated=False,
        continuation_token=None,
    )


def _parse_document(xml: Union[str, bytes]):
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    if not xml.strip():
        return None
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        return etree.fromstring(xml, parser)
    except etree.XMLSyntaxError as exc:
        LOGGER.warning("Unparseable PROPFIND response: %s", exc)
        return None


def _parse_response(
    response,
    *,
    full_prefix: str,
    display_prefix: str,
    endpoint_path: str,
    base_path: str,
) -> Optional[ListedEntry]:
    href = find_text(response, "href")
    if not href or not href.strip():
        raise ParseError("response without href")

    path = unquote(urlsplit(href.strip()).path).lstrip("/")
    path = strip_leading_segments(path, endpoint_path)
    relative = strip_leading_segments(path, base_path)
    if _is_same_collection(path, full_prefix) or _is_same_collection(relative, display_prefix):
        return None

    props = _successful_props(response)

    resource_type = _find_prop(props, "resourcetype")
    is_directory = resource_type is not None and find_named(resource_type, "collection") is not None

    name = _prop_text(props, "displayname")
    if not name:
        name = relative.rstrip("/").rpartition("/")[2]
    if not name:
        raise ParseError(f"cannot derive a name for '{href}'")

    size = 0
    if not is_directory:
        size = _parse_size(_prop_text(props, "getcontentlength"))

    key = f"{display_prefix}{name}/" if is_directory else f"{display_prefix}{name}"
    return ListedEntry(
        key=key,
        name=name,
        size=size,
        last_modified=_prop_text(props, "getlastmodified"),
        is_directory=is_directory,
        etag=_prop_text(props, "getetag") or None,
    )


def _successful_props(response) -> list:
    """Return the containers to read properties from, skipping failed propstats.

    Servers report unknown properties in a separate ``propstat`` with a 404
    status; those empty elements must not shadow the real values.
    """

    containers = []
    for propstat in iter_named(response, "propstat"):
        status = find_text(propstat, "status") or ""
        if status and " 200" not in status:
            continue
        containers.append(propstat)
    return containers or [response]


def _find_prop(props: list, name: str):
    for container in props:
        found = find_named(container, name)
        if found is not None:
            return found
    return None


def _prop_text(props: list, name: str) -> str:
    found = _find_prop(props, name)
    if found is None:
        return ""
    return found.text or ""


def _is_same_collection(path: str, prefix: str) -> bool:
    return path.strip("/") == prefix.strip("/")


def _parse_size(value: Optional[str]) -> int:
    if not value:
        return 0
    try:
        return max(int(value.strip()), 0)
    except ValueError:
        return 0
