"""Importing a library from an INPX collection or from a folder of book files."""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
import zipfile
import zlib
from collections.abc import Callable, Iterable

from .catalog import Catalog
from .inpx import (
    Field,
    InpRecord,
    default_fields,
    is_unknown_author,
    parse_record,
    parse_structure,
    split_tags,
)
from .metadata import parse_fb2
from .models import Author, parse_author
from .scanner import FB2_HEAD_SIZE, Scanner, UpdateType

log = logging.getLogger(__name__)

PROGRESS_EVERY = 1000


class _ArchiveCache:
    """Keeps the last opened book archive open for the next lookup."""

    def __init__(self) -> None:
        self._path: str | None = None
        self._zip: zipfile.ZipFile | None = None

    def head(self, path: str, member: str) -> bytes:
        if path != self._path:
            self.close()
            self._path = path
            try:
                self._zip = zipfile.ZipFile(path)
            except (OSError, zipfile.BadZipFile):
                log.warning("cannot open archive %s", path)
        if self._zip is None:
            return b""
        try:
            with self._zip.open(member) as handle:
                return handle.read(FB2_HEAD_SIZE)
        except (KeyError, zipfile.BadZipFile, zlib.error, OSError):
            log.warning("cannot read %s from %s", member, path)
            return b""

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def __enter__(self) -> _ArchiveCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _known_author(author: Author) -> bool:
    if not (author.first_name or author.last_name or author.middle_name):
        return False
    return "неизвест" not in author.display_name().lower()


class Importer:
    """Fills one library of the database from its INPX file or its book folder."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        library_id: int,
        path: str | os.PathLike[str] = "",
        inpx: str | os.PathLike[str] = "",
        update_type: UpdateType = UpdateType.NEW,
        first_author_only: bool = False,
        without_deleted: bool = False,
        files: Iterable[str | os.PathLike[str]] | None = None,
        on_message: Callable[[str], None] | None = None,
    ) -> None:
        self.conn = conn
        self.library_id = library_id
        self.path = os.fspath(path)
        self.inpx = os.fspath(inpx)
        self.update_type = UpdateType(update_type)
        self.first_author_only = first_author_only
        self.without_deleted = without_deleted
        self.files = [os.fspath(name) for name in files or ()]
        self.on_message = on_message
        self._stop = threading.Event()

    def stop(self) -> None:
        """Ask a running import to finish early."""
        self._stop.set()

    def _message(self, text: str) -> None:
        if self.on_message is not None:
            self.on_message(text)

    def _scanner(self, catalog: Catalog) -> Scanner:
        return Scanner(
            catalog, self.path, self.update_type, self.first_author_only, self.on_message, self._stop
        )

    def process(self) -> int:
        """Run the import; returns the number of books read.

        Given files are added to the library as they are. Otherwise a full
        update clears the library first and a delete-and-new update marks
        its books deleted; a folder scan then drops books still marked.
        """
        if self.files:
            scanner = self._scanner(Catalog(self.conn, self.library_id))
            return sum(scanner.import_path(name) for name in self.files)

        if self.update_type is UpdateType.FULL:
            self._clear(mark_deleted=False)
        elif self.update_type is UpdateType.DEL_AND_NEW:
            self._clear(mark_deleted=True)
        catalog = Catalog(self.conn, self.library_id)

        if not self.inpx:
            count = self._scanner(catalog).import_path(self.path)
            self.conn.execute(
                "DELETE FROM book WHERE id_lib=? AND deleted=1", (self.library_id,)
            )
            self.conn.commit()
            self.conn.execute("VACUUM")
            return count
        return self._import_inpx(catalog)

    def _clear(self, mark_deleted: bool) -> None:
        params = (self.library_id,)
        if mark_deleted:
            self.conn.execute("UPDATE book SET deleted=1 WHERE id_lib=?", params)
        else:
            for statement in (
                "DELETE FROM book_tag WHERE id_book IN (SELECT id FROM book WHERE id_lib=?)",
                "DELETE FROM book_author WHERE id_lib=?",
                "DELETE FROM book_genre WHERE id_lib=?",
                "DELETE FROM book WHERE id_lib=?",
                "DELETE FROM author_tag WHERE id_author IN (SELECT id FROM author WHERE id_lib=?)",
                "DELETE FROM author WHERE id_lib=?",
                "DELETE FROM seria_tag WHERE id_seria IN (SELECT id FROM seria WHERE id_lib=?)",
                "DELETE FROM seria WHERE id_lib=?",
            ):
                self.conn.execute(statement, params)
        self.conn.commit()

    def _fields(self, inpx: zipfile.ZipFile, names: list[str]) -> dict[Field, int]:
        structure = next((name for name in names if name.upper() == "STRUCTURE.INFO"), None)
        if structure is None:
            return default_fields()
        return parse_structure(inpx.read(structure).decode("utf-8", errors="replace"))

    def _import_inpx(self, catalog: Catalog) -> int:
        existing: set[int] = set()
        if self.update_type is UpdateType.NEW:
            existing = {
                row[0]
                for row in self.conn.execute(
                    "SELECT id_inlib FROM book WHERE id_lib=?", (self.library_id,)
                )
            }
        total = 0
        with zipfile.ZipFile(self.inpx) as inpx, _ArchiveCache() as archives:
            names = inpx.namelist()
            if "VERSION.INFO" in names:
                version = " ".join(inpx.read("VERSION.INFO").decode("utf-8", errors="replace").split())
                self.conn.execute(
                    "UPDATE lib SET version=? WHERE id=?", (version, self.library_id)
                )
            fields = self._fields(inpx, names)
            for name in names:
                if self._stop.is_set():
                    break
                if name[-3:].upper() != "INP":
                    continue
                self._message(name)
                if self.update_type is UpdateType.NEW:
                    known = self.conn.execute(
                        "SELECT 1 FROM book WHERE archive=? AND id_lib=? LIMIT 1",
                        (name, self.library_id),
                    ).fetchone()
                    if known is not None:
                        continue
                added = 0
                for line in inpx.read(name).decode("utf-8", errors="replace").split("\n"):
                    if not line:
                        continue
                    if self._stop.is_set():
                        break
                    record = parse_record(line, fields, name)
                    if self.update_type is UpdateType.NEW and record.id_in_lib in existing:
                        continue
                    if record.serial:
                        catalog.add_seria(record.serial, split_tags(record.serial_tags, catalog.tags))
                    if self.without_deleted and record.deleted:
                        continue
                    self._add_record(catalog, archives, record)
                    added += 1
                    total += 1
                    if added % PROGRESS_EVERY == 0:
                        self._message(f"Books adds: {total}")
                if added % PROGRESS_EVERY:
                    self._message(f"Books adds: {total}")
        self.conn.commit()
        return total

    def _add_record(self, catalog: Catalog, archives: _ArchiveCache, record: InpRecord) -> None:
        book_id = catalog.add_book(record, split_tags(record.tags, catalog.tags))
        author_tags = split_tags(record.author_tags, catalog.tags)
        added = 0
        for name in record.authors:
            unknown = is_unknown_author(name)
            if record.format == "fb2" and len(record.authors) == 1 and unknown:
                authors = self._authors_from_book(archives, record)
            elif not unknown:
                authors = [parse_author(name)]
            else:
                authors = []
            for author in authors:
                first = added == 0
                catalog.add_author(author, book_id, first, author_tags if first else None)
                added += 1
        for genre in record.genres:
            catalog.add_genre(book_id, genre.strip())

    def _authors_from_book(self, archives: _ArchiveCache, record: InpRecord) -> list[Author]:
        archive = f"{self.path}/{record.folder.replace('.inp', '.zip')}"
        data = archives.head(archive, f"{record.file}.{record.format}")
        return [author for author in parse_fb2(data).authors if _known_author(author)]