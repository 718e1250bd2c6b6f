"""Author identity normalization for extensions.

Host manifests describe authors in many shapes: a bare string, a mapping
with ``name``/``github``/``email``/``url`` keys, an object carrying those as
attributes, or a list/tuple/set mixing all of the above. Everything here
goes through ``candidate_identities`` so endpoint matching sees one
canonical list of strings.
"""

import logging
from collections.abc import Iterable, Mapping
from functools import singledispatch
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

_IDENTITY_FIELDS = ("name", "github", "email", "url")


def _from_fields(name: Any, github: Any, email: Any, url: Any) -> list[str]:
    identities = [value for value in (name, github, email) if isinstance(value, str) and value]
    if isinstance(email, str) and "@" in email:
        local_part = email.split("@", 1)[0]
        if local_part:
            identities.append(local_part)
    if isinstance(url, str) and url:
        segments = [s for s in urlparse(url).path.split("/") if s]
        if segments:
            identities.append(segments[0])
    return identities


@singledispatch
def _identities(descriptor: Any) -> list[str]:
    if descriptor is None:
        return []
    values = [getattr(descriptor, field, None) for field in _IDENTITY_FIELDS]
    if any(values):
        return _from_fields(*values)
    if isinstance(descriptor, Iterable):
        return _flatten(descriptor)
    return []


@_identities.register
def _(descriptor: str) -> list[str]:
    return [descriptor] if descriptor else []


@_identities.register
def _(descriptor: Mapping) -> list[str]:
    return _from_fields(*(descriptor.get(field) for field in _IDENTITY_FIELDS))


@_identities.register(list)
@_identities.register(tuple)
@_identities.register(set)
@_identities.register(frozenset)
def _flatten(descriptor) -> list[str]:
    identities: list[str] = []
    for item in descriptor:
        identities.extend(_identities(item))
    return identities


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def candidate_identities(descriptor: Any) -> list[str]:
    """Every identity string an author descriptor can be matched by.

    Order: display name, handle, email, email local part, URL-derived username,
    repeated per author for collections. Duplicates are dropped.
    """
    try:
        return _unique(_identities(descriptor))
    except Exception as e:
        logger.warning(f"Failed to parse author descriptor {descriptor!r}: {e}")
        return []


def _author_descriptors(extension: Any) -> list[Any]:
    if extension is None:
        return []
    descriptors = []
    authors = getattr(extension, "authors", None)
    if authors is None and isinstance(extension, Mapping):
        authors = extension.get("authors")
    if authors:
        descriptors.append(authors)
    author = getattr(extension, "author", None)
    if author is None and isinstance(extension, Mapping):
        author = extension.get("author")
    if isinstance(author, str) and author:
        descriptors.append(author)
    return descriptors


def extension_identities(extension: Any) -> list[str]:
    """Candidate identities across an extension's ``authors`` and legacy ``author``."""
    return _unique(
        identity
        for descriptor in _author_descriptors(extension)
        for identity in candidate_identities(descriptor)
    )


def extension_matches_author(extension: Any, author_identifier: str) -> bool:
    """Check if an extension was authored by the given identifier."""
    if extension is None or not author_identifier:
        return False
    return author_identifier in extension_identities(extension)


def _display_name(descriptor: Any) -> str | None:
    if isinstance(descriptor, str):
        return descriptor or None
    if isinstance(descriptor, Mapping):
        fields = [descriptor.get(f) for f in ("name", "github", "email")]
    else:
        fields = [getattr(descriptor, f, None) for f in ("name", "github", "email")]
    return next((f for f in fields if isinstance(f, str) and f), None)


def extract_author_names(extension: Any) -> list[str]:
    """Display names of an extension's authors, preferring name, then handle, then email."""
    names: list[str] = []
    for descriptor in _author_descriptors(extension):
        if isinstance(descriptor, (str, Mapping)):
            items = [descriptor]
        elif isinstance(descriptor, Iterable):
            items = list(descriptor)
        else:
            items = [descriptor]
        for item in items:
            name = _display_name(item)
            if name:
                names.append(name)
    return names


def primary_author_name(extension: Any, unknown_label: str = "Unknown") -> str:
    names = extract_author_names(extension)
    return names[0] if names else unknown_label


def formatted_author_string(extension: Any, unknown_label: str = "Unknown") -> str:
    names = extract_author_names(extension)
    return ", ".join(names) if names else unknown_label


def has_author_info(extension: Any) -> bool:
    return bool(extract_author_names(extension))
