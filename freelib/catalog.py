"""Writing books, authors, series, genres and tags of one library to the database."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from .inpx import InpRecord
from .models import Author

log = logging.getLogger(__name__)


def relative_name(path: str, base: str) -> str:
    """Drop the first ``len(base)`` characters of ``path`` and one leading slash."""
    result = path[len(base):]
    if result[:1] in ("/", "\\"):
        result = result[1:]
    return result


def _key(author: Author) -> tuple[str, str, str]:
    return author.first_name, author.middle_name, author.last_name


class Catalog:
    """Adds records to one library of the database.

    Authors already stored for the library are cached when the catalog is
    made, so create it after any clearing of the library.
    """

    def __init__(self, conn: sqlite3.Connection, library_id: int) -> None:
        self.conn = conn
        self.library_id = library_id
        self.genre_keys: dict[str, int] = {}
        for genre_id, keys in conn.execute("SELECT id, keys FROM genre WHERE NOT keys=''"):
            for key in (keys or "").split(";"):
                if key:
                    self.genre_keys[key] = genre_id & 0xFFFF
        self.tags: dict[str, int] = {
            (name or "").strip(): tag_id
            for tag_id, name in conn.execute("SELECT id, name FROM tag")
        }
        self._authors: dict[tuple[str, str, str], int] = {}
        rows = conn.execute(
            "SELECT id, name1, name2, name3 FROM author WHERE id_lib=?", (library_id,)
        )
        for author_id, last, first, middle in rows:
            author = Author(
                first_name=(first or "").strip(),
                last_name=(last or "").strip(),
                middle_name=(middle or "").strip(),
            )
            self._authors[_key(author)] = author_id

    def _link_tags(self, table: str, column: str, owner_id: int, tags: Iterable[int] | None) -> None:
        if not tags:
            return
        self.conn.executemany(
            f"INSERT OR IGNORE INTO {table}({column}, id_tag) VALUES (?, ?)",
            [(owner_id, tag_id) for tag_id in tags],
        )

    def add_seria(self, name: str, tags: Iterable[int] | None = None) -> int:
        """Return the id of the series with this name, adding it if new; 0 for a blank name.

        Tags are attached only to a newly added series.
        """
        name = name.strip()
        if not name:
            return 0
        row = self.conn.execute(
            "SELECT id FROM seria WHERE name=? AND id_lib=?", (name, self.library_id)
        ).fetchone()
        if row is not None:
            return row[0]
        cursor = self.conn.execute(
            "INSERT INTO seria(name, id_lib) VALUES (?, ?)", (name, self.library_id)
        )
        seria_id = cursor.lastrowid
        self._link_tags("seria_tag", "id_seria", seria_id, tags)
        return seria_id

    def add_author(
        self,
        author: Author,
        book_id: int,
        first_author: bool = False,
        tags: Iterable[int] | None = None,
    ) -> int:
        """Link an author to a book, storing the author first if unknown.

        Returns the author's id. A first author also becomes the book's
        ``first_author_id``.
        """
        author_id = self._authors.get(_key(author), 0)
        if author_id == 0:
            cursor = self.conn.execute(
                "INSERT INTO author(name1, name2, name3, id_lib) VALUES (?, ?, ?, ?)",
                (author.last_name, author.first_name, author.middle_name, self.library_id),
            )
            author_id = cursor.lastrowid
            self._authors[_key(author)] = author_id
        if first_author:
            self.conn.execute(
                "UPDATE book SET first_author_id=? WHERE id=?", (author_id, book_id)
            )
        self.conn.execute(
            "INSERT OR IGNORE INTO book_author(id_book, id_author, id_lib) VALUES (?, ?, ?)",
            (book_id, author_id, self.library_id),
        )
        self._link_tags("author_tag", "id_author", author_id, tags)
        return author_id

    def add_book(self, record: InpRecord, tags: Iterable[int] | None = None) -> int:
        """Store a book and return its id.

        The record's series is looked up by name, or added; its folder is
        stored as the book's archive.
        """
        serial_id = self.add_seria(record.serial)
        cursor = self.conn.execute(
            "INSERT INTO book(name, star, id_seria, num_in_seria, language, file, size, "
            "deleted, date, keys, id_inlib, id_lib, format, archive) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.name,
                record.stars,
                serial_id or None,
                record.num_in_serial,
                record.language,
                record.file,
                record.size,
                int(record.deleted),
                record.date.isoformat() if record.date else None,
                record.keys,
                record.id_in_lib,
                self.library_id,
                record.format,
                record.folder,
            ),
        )
        book_id = cursor.lastrowid
        self._link_tags("book_tag", "id_book", book_id, tags)
        return book_id

    def add_genre(self, book_id: int, genre: str) -> int:
        """Link a book to the genre with this key; returns the genre id, or 0 if unknown."""
        key = genre.lower().replace(" ", "_")
        genre_id = self.genre_keys.get(key, 0)
        if genre_id == 0:
            log.debug("unknown genre: %s", genre)
            return 0
        self.conn.execute(
            "INSERT OR IGNORE INTO book_genre(id_book, id_genre, id_lib) VALUES (?, ?, ?)",
            (book_id, genre_id, self.library_id),
        )
        return genre_id

    def undelete_existing(self, file_name: str, archive_name: str) -> bool:
        """Clear the deleted mark of a stored book; tell whether the book was found."""
        row = self.conn.execute(
            "SELECT id FROM book WHERE id_lib=? AND file=? AND archive=?",
            (self.library_id, file_name, archive_name),
        ).fetchone()
        if row is None:
            return False
        self.conn.execute("UPDATE book SET deleted=0 WHERE id=?", (row[0],))
        return True