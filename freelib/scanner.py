"""Adding FB2 and EPUB books found in folders and zip archives to a library."""

from __future__ import annotations

import logging
import os
import posixpath
import threading
import zipfile
import zlib
from collections.abc import Callable
from datetime import date
from enum import IntEnum

from .catalog import Catalog, relative_name
from .inpx import InpRecord
from .metadata import BookMetadata, parse_epub, parse_fb2

log = logging.getLogger(__name__)

FB2_HEAD_SIZE = 16 * 1024
COMMIT_EVERY = 1000
_UTF8_NAME_FLAG = 0x800


class UpdateType(IntEnum):
    """How an update treats the books already in a library."""

    FULL = 10
    DEL_AND_NEW = 11
    NEW = 12


def _base_name(name: str) -> str:
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def _suffix(name: str) -> str:
    base = _base_name(name)
    return base.rpartition(".")[2] if "." in base else ""


def _complete_base_name(name: str) -> str:
    base = _base_name(name)
    return base.rpartition(".")[0] if "." in base else base


def _member_name(info: zipfile.ZipInfo) -> str:
    """Decode a member name; names without the UTF-8 flag are taken as CP866."""
    if info.flag_bits & _UTF8_NAME_FLAG:
        return info.filename
    try:
        return info.filename.encode("cp437").decode("cp866")
    except UnicodeError:
        return info.filename


def _entries(path: str) -> list[str]:
    if os.path.isfile(path):
        return [path]
    try:
        with os.scandir(path) as listing:
            entries = [
                entry
                for entry in listing
                if not entry.is_symlink()
                and not entry.name.startswith(".")
                and os.access(entry.path, os.R_OK)
            ]
    except OSError:
        return []
    return [entry.path for entry in sorted(entries, key=lambda entry: entry.name.lower())]


class Scanner:
    """Walks files and folders and stores the books it finds through a catalog."""

    def __init__(
        self,
        catalog: Catalog,
        library_path: str | os.PathLike[str],
        update_type: UpdateType = UpdateType.NEW,
        first_author_only: bool = False,
        on_message: Callable[[str], None] | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.catalog = catalog
        self.library_path = os.path.abspath(os.fspath(library_path))
        self.update_type = UpdateType(update_type)
        self.first_author_only = first_author_only
        self.on_message = on_message
        self.stop_event = stop_event
        self._pending = 0

    def _message(self, text: str) -> None:
        if self.on_message is not None:
            self.on_message(text)

    def _stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def _tick(self) -> None:
        self._pending += 1
        if self._pending >= COMMIT_EVERY:
            self.catalog.conn.commit()
            self._pending = 0

    def _relative(self, file_name: str, archive_name: str) -> tuple[str, str]:
        if archive_name:
            return file_name, relative_name(archive_name, self.library_path)
        return relative_name(file_name, self.library_path), archive_name

    def _store(self, record: InpRecord, meta: BookMetadata) -> int:
        book_id = self.catalog.add_book(record)
        for index, author in enumerate(meta.authors):
            self.catalog.add_author(author, book_id, index == 0)
            if self.first_author_only:
                break
        for genre in meta.genres:
            self.catalog.add_genre(book_id, genre)
        return book_id

    def read_fb2(self, data: bytes, file_name: str, archive_name: str = "", file_size: int = 0) -> int:
        """Store an FB2 book (or its .fbd description).

        Returns the new book's id, or 0 when the book was already stored; a
        stored book only loses its deleted mark.
        """
        file_name, archive_name = self._relative(file_name, archive_name)
        suffix = _suffix(file_name)
        file_name = file_name[: max(0, len(file_name) - len(suffix) - 1)]
        if self.catalog.undelete_existing(file_name, archive_name):
            return 0
        self._message(f"Book add: {file_name}")
        meta = parse_fb2(data)
        record = InpRecord(
            name=meta.title,
            serial=meta.serial,
            num_in_serial=meta.num_in_serial,
            file=file_name,
            size=file_size or len(data),
            format=suffix,
            date=date.today(),
            language=meta.language,
            folder=archive_name,
        )
        return self._store(record, meta)

    def read_epub(self, data: bytes, file_name: str, archive_name: str = "", file_size: int = 0) -> int:
        """Store an EPUB book.

        Returns the new book's id, or 0 when it was already stored or has no
        title or no author.
        """
        file_name, archive_name = self._relative(file_name, archive_name)
        file_name = file_name[: max(0, len(file_name) - 5)]
        if self.catalog.undelete_existing(file_name, archive_name):
            return 0
        self._message(f"Book add: {file_name}")
        meta = parse_epub(data)
        if not meta.title or not meta.authors:
            return 0
        record = InpRecord(
            name=meta.title,
            file=file_name,
            size=file_size or len(data),
            format="epub",
            date=date.today(),
            language=meta.language,
            folder=archive_name,
        )
        return self._store(record, meta)

    def import_path(self, path: str | os.PathLike[str]) -> int:
        """Import a file or everything below a folder; returns the entries read."""
        self._pending = 0
        processed = self._import(os.path.abspath(os.fspath(path)))
        self.catalog.conn.commit()
        self._pending = 0
        return processed

    def _import(self, path: str) -> int:
        processed = 0
        for entry in _entries(path):
            if self._stopped():
                break
            if os.path.isdir(entry):
                processed += self._import(entry)
                continue
            suffix = _suffix(entry).lower()
            if suffix in ("fb2", "epub"):
                with open(entry, "rb") as handle:
                    data = handle.read()
                if suffix == "fb2":
                    self.read_fb2(data, entry, "", 0)
                else:
                    self.read_epub(data, entry, "", 0)
                processed += 1
                self._tick()
            elif suffix == "zip":
                processed += self._import_zip(entry)
            elif suffix != "fbd":
                fbd = os.path.join(os.path.dirname(entry), _complete_base_name(entry) + ".fbd")
                if os.path.isfile(fbd):
                    with open(fbd, "rb") as handle:
                        data = handle.read()
                    self.read_fb2(data, entry, "", os.path.getsize(entry))
                    processed += 1
                    self._tick()
        return processed

    def _import_zip(self, file_name: str) -> int:
        if self.update_type is UpdateType.NEW:
            self._message(os.path.basename(file_name))
            archive_name = relative_name(file_name, self.library_path)
            known = self.catalog.conn.execute(
                "SELECT 1 FROM book WHERE archive=? LIMIT 1", (archive_name,)
            ).fetchone()
            if known is not None:
                return 0
        try:
            archive = zipfile.ZipFile(file_name)
        except (OSError, zipfile.BadZipFile):
            log.warning("cannot open archive %s", file_name)
            return 0
        processed = 0
        with archive:
            members = {_member_name(info): info for info in archive.infolist()}
            for name, info in members.items():
                if self._stopped():
                    break
                if info.file_size == 0:
                    continue
                try:
                    self._read_member(archive, members, name, info, file_name)
                except (zipfile.BadZipFile, zlib.error, OSError, NotImplementedError, RuntimeError):
                    log.warning("cannot read %s from %s", name, file_name)
                processed += 1
                self._tick()
        return processed

    def _read_member(
        self,
        archive: zipfile.ZipFile,
        members: dict[str, zipfile.ZipInfo],
        name: str,
        info: zipfile.ZipInfo,
        file_name: str,
    ) -> None:
        low = name.lower()
        if low.endswith("fb2"):
            with archive.open(info) as handle:
                data = handle.read(FB2_HEAD_SIZE)
            self.read_fb2(data, name, file_name, info.file_size)
        elif low.endswith("epub"):
            self.read_epub(archive.read(info), name, file_name, info.file_size)
        elif not low.endswith("fbd"):
            base = _complete_base_name(name)
            if base and not base.startswith("."):
                fbd = posixpath.join(posixpath.dirname(name), base + ".fbd")
                if fbd in members:
                    self.read_fb2(archive.read(members[fbd]), name, file_name, info.file_size)