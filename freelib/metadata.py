"""Reading title, authors, series and genres from FB2 and EPUB books."""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET
import zipfile
import zlib
from collections.abc import Iterator
from dataclasses import dataclass, field

from .models import Author


@dataclass
class BookMetadata:
    """What a book file says about itself."""

    title: str = ""
    language: str = ""
    serial: str = ""
    num_in_serial: int = 0
    authors: list[Author] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    isbn: str = ""


def _local(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _parse_xml(data: bytes) -> ET.Element | None:
    """Parse as much of a document as is well formed; truncated input is fine."""
    parser = ET.XMLPullParser(events=("start",))
    root = None
    try:
        parser.feed(data)
        for _event, element in parser.read_events():
            if root is None:
                root = element
        parser.close()
        for _event, element in parser.read_events():
            if root is None:
                root = element
    except ET.ParseError:
        pass
    return root


def _find_all(element: ET.Element, name: str, include_self: bool = False) -> Iterator[ET.Element]:
    for node in element.iter():
        if node is element and not include_self:
            continue
        if _local(node.tag) == name:
            yield node


def _first(element: ET.Element | None, name: str, include_self: bool = False) -> ET.Element | None:
    if element is None:
        return None
    return next(_find_all(element, name, include_self), None)


def _text(element: ET.Element | None) -> str:
    return "" if element is None else "".join(element.itertext())


def _to_uint(value: str) -> int:
    value = value.strip()
    if value.startswith("+"):
        value = value[1:]
    if not value or not value.isascii() or not value.isdigit():
        return 0
    number = int(value)
    return number if number < 2**32 else 0


def parse_fb2(data: bytes) -> BookMetadata:
    """Read the description of an FB2 document, possibly cut short."""
    meta = BookMetadata()
    root = _parse_xml(data)
    if root is None:
        return meta

    title_info = _first(root, "title-info", include_self=True)
    if title_info is not None:
        meta.title = _text(_first(title_info, "book-title"))
        meta.language = _text(_first(title_info, "lang"))[:2]
        sequence = _first(title_info, "sequence")
        if sequence is not None:
            meta.serial = sequence.get("name", "").strip()
            meta.num_in_serial = _to_uint(sequence.get("number", ""))
        meta.authors = [
            Author(
                first_name=_text(_first(node, "first-name")).strip(),
                last_name=_text(_first(node, "last-name")).strip(),
                middle_name=_text(_first(node, "middle-name")).strip(),
            )
            for node in _find_all(title_info, "author")
        ]
        meta.genres = [_text(node).strip() for node in _find_all(title_info, "genre")]

    publish_info = _first(root, "publish-info", include_self=True)
    meta.isbn = _text(_first(publish_info, "isbn"))
    return meta


def _read_member(archive: zipfile.ZipFile, name: str) -> bytes:
    try:
        return archive.read(name)
    except (KeyError, zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError):
        return b""


def _author_from_creator(text: str) -> Author:
    names = text.strip().split(" ")
    names += [""] * (3 - len(names))
    return Author(first_name=names[0], middle_name=names[1], last_name=names[2])


def parse_epub(data: bytes) -> BookMetadata:
    """Read the package metadata of an EPUB book held in memory."""
    meta = BookMetadata()
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, OSError):
        return meta

    with archive:
        root = _parse_xml(_read_member(archive, "META-INF/container.xml"))
        if root is None:
            return meta
        for rootfiles in root:
            if _local(rootfiles.tag).lower() != "rootfiles":
                continue
            for rootfile in rootfiles:
                if _local(rootfile.tag).lower() != "rootfile":
                    continue
                package = _parse_xml(_read_member(archive, rootfile.get("full-path", "")))
                metadata = None
                if package is not None:
                    metadata = next((c for c in package if _local(c.tag) == "metadata"), None)
                for child in metadata if metadata is not None else ():
                    name = _local(child.tag)
                    text = _text(child).strip()
                    if name.endswith("title"):
                        meta.title = text
                    elif name.endswith("language"):
                        meta.language = text[:2]
                    elif name.endswith("creator"):
                        meta.authors.append(_author_from_creator(text))
                    elif name.endswith("subject"):
                        meta.genres.append(text)
                return meta
    return meta