"""Reading book files from a library folder or its archives, and their annotations."""

from __future__ import annotations

import base64
import binascii
import io
import os
import posixpath
import tempfile
import xml.etree.ElementTree as ET
import zipfile
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime

from .models import Book, Library

IMAGE_SUBDIR = "freeLib"


@dataclass
class BookFile:
    """The bytes of a book file with its side-car description and date."""

    path: str
    data: bytes = b""
    info: bytes = b""
    modified: datetime | None = None


def _book(library: Library, book_id: int) -> Book:
    try:
        return library.books[book_id]
    except KeyError:
        raise KeyError(f"no book {book_id} in library {library.name!r}") from None


def _read_plain(path: str, with_info: bool) -> BookFile:
    with open(path, "rb") as handle:
        data = handle.read()
    stat = os.stat(path)
    created = getattr(stat, "st_birthtime", stat.st_ctime)
    info = b""
    absolute = os.path.abspath(path)
    if with_info:
        fbd = os.path.splitext(absolute)[0] + ".fbd"
        if os.path.exists(fbd):
            with open(fbd, "rb") as handle:
                info = handle.read()
    return BookFile(absolute, data, info, datetime.fromtimestamp(created))


def _read_archived(archive: str, member: str, with_info: bool) -> BookFile:
    with zipfile.ZipFile(archive) as zf:
        try:
            entry = zf.getinfo(member)
        except KeyError:
            raise FileNotFoundError(f"{member} not found in {archive}") from None
        data = zf.read(entry)
        info = b""
        if with_info:
            directory, name = posixpath.split(member)
            fbd = posixpath.join(directory, posixpath.splitext(name)[0] + ".fbd")
            try:
                info = zf.read(fbd)
            except KeyError:
                info = b""
    return BookFile(f"{archive}/{member}", data, info, datetime(*entry.date_time))


def read_book_file(library: Library, book_id: int, with_info: bool = False) -> BookFile:
    """Read a book from the library folder or from the zip archive holding it.

    With ``with_info`` the matching ``.fbd`` description is read too, when present.
    """
    book = _book(library, book_id)
    member = f"{book.file}.{book.format}"
    if not book.archive:
        return _read_plain(f"{library.path}/{member}", with_info)
    archive = f"{library.path}/{book.archive.replace('.inp', '.zip')}".replace("\\", "/")
    return _read_archived(archive, member, with_info)


def _parse(data: bytes) -> ET.Element | None:
    try:
        return ET.fromstring(data)
    except ET.ParseError:
        return None


def _local(tag: object) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


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


def _child(element: ET.Element | None, name: str) -> ET.Element | None:
    if element is None:
        return None
    return next((node for node in element if _local(node.tag) == name), None)


def _attr(element: ET.Element | None, name: str) -> str:
    if element is None:
        return ""
    return next((value for key, value in element.attrib.items() if _local(key) == name), "")


def _text(element: ET.Element | None) -> str:
    return "" if element is None else "".join(element.itertext())


def _write_image(path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(data)


def _read_member(archive: zipfile.ZipFile, name: str) -> bytes:
    try:
        return archive.read(name)
    except KeyError:
        return b""


def _fb2_annotation(book: Book, data: bytes, image_path: str) -> None:
    root = _parse(data)
    if root is None:
        return
    title_info = _first(root, "title-info", include_self=True)
    cover = _attr(_first(_first(title_info, "coverpage"), "image"), "href")
    if cover.startswith("#"):
        for binary in _find_all(root, "binary", include_self=True):
            if binary.get("id", "") == cover[1:]:
                book.image = image_path
                try:
                    image = base64.b64decode(_text(binary).encode("latin-1", "ignore"))
                except binascii.Error:
                    image = b""
                _write_image(image_path, image)
                break
    book.annotation = _text(_first(title_info, "annotation"))


def _epub_annotation(book: Book, data: bytes, image_path: str) -> None:
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile:
        return
    with archive:
        container = _parse(_read_member(archive, "META-INF/container.xml"))
        if container is None:
            return
        rootfile = next(
            (
                node
                for rootfiles in container
                if _local(rootfiles.tag).lower() == "rootfiles"
                for node in rootfiles
                if _local(node.tag).lower() == "rootfile"
            ),
            None,
        )
        if rootfile is None:
            return
        opf_path = rootfile.get("full-path", "")
        base_dir = posixpath.dirname(opf_path)
        package = _parse(_read_member(archive, opf_path))
        if package is None:
            return
        metadata = _child(package, "metadata")
        manifest = _child(package, "manifest")
        for node in metadata if metadata is not None else ():
            name = _local(node.tag)
            if name.endswith("description"):
                book.annotation = _text(node)
            elif name.endswith("meta") and node.get("name", "") == "cover":
                cover_id = node.get("content", "")
                for item in manifest if manifest is not None else ():
                    if item.get("id", "") == cover_id:
                        href = item.get("href", "")
                        cover = posixpath.join(base_dir, href) if base_dir else href
                        book.image = image_path
                        _write_image(image_path, _read_member(archive, cover))
                        break


def load_annotation(library: Library, book_id: int, image_dir: str | None = None) -> Book:
    """Fill in the annotation and cover image of an FB2 or EPUB book.

    The cover is written to ``<image_dir>/<book_id>.jpg``; by default
    ``image_dir`` is a folder in the system temporary directory.
    """
    book = _book(library, book_id)
    data = read_book_file(library, book_id).data
    directory = image_dir or os.path.join(tempfile.gettempdir(), IMAGE_SUBDIR)
    image_path = os.path.join(directory, f"{book_id}.jpg")
    if book.format == "epub":
        _epub_annotation(book, data, image_path)
    elif book.format == "fb2":
        _fb2_annotation(book, data, image_path)
    return book


def name_from_inpx(path: str | os.PathLike[str]) -> str:
    """Return the collection name: the first line of COLLECTION.INFO in an INPX file."""
    path = os.fspath(path)
    if not path:
        return ""
    with zipfile.ZipFile(path) as zf:
        try:
            data = zf.read("COLLECTION.INFO")
        except KeyError:
            return ""
    return data.split(b"\n", 1)[0].decode("utf-8", errors="replace")