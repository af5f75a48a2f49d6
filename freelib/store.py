"""Reading libraries, their books and genres from the database into memory."""

from __future__ import annotations

import sqlite3
from datetime import date

from .models import Author, Book, Genre, Library, Serial

UNSORTED_GENRE_ID = 1112


def _text(value: object) -> str:
    return "" if value is None else str(value)


def _int(value: object) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _date(value: object) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _library_from_row(row: tuple) -> Library:
    name, path, inpx, version, first_author, wo_deleted = row
    return Library(
        name=_text(name).strip(),
        path=_text(path).strip(),
        inpx=_text(inpx).strip(),
        version=_text(version).strip(),
        first_author_only=bool(first_author),
        without_deleted=bool(wo_deleted),
    )


def list_libraries(conn: sqlite3.Connection) -> dict[int, Library]:
    """Return every library of the database, without its books, keyed by id."""
    rows = conn.execute(
        "SELECT id, name, path, inpx, version, firstAuthor, woDeleted FROM lib ORDER BY id"
    )
    return {row[0]: _library_from_row(row[1:]) for row in rows}


def _load_serials(conn: sqlite3.Connection, library: Library, library_id: int) -> None:
    rows = conn.execute("SELECT id, name FROM seria WHERE id_lib=?", (library_id,))
    library.serials = {serial_id: Serial(name=_text(name)) for serial_id, name in rows}
    rows = conn.execute(
        "SELECT seria_tag.id_seria, seria_tag.id_tag FROM seria_tag "
        "INNER JOIN seria ON seria.id = seria_tag.id_seria WHERE seria.id_lib = ?",
        (library_id,),
    )
    for serial_id, tag_id in rows:
        if serial_id in library.serials:
            library.serials[serial_id].tag_ids.append(tag_id)


def _load_authors(conn: sqlite3.Connection, library: Library, library_id: int) -> None:
    library.authors = {0: Author()}
    rows = conn.execute(
        "SELECT id, name1, name2, name3 FROM author WHERE id_lib=?", (library_id,)
    )
    for author_id, last, first, middle in rows:
        library.authors[author_id] = Author(
            first_name=_text(first).strip(),
            last_name=_text(last).strip(),
            middle_name=_text(middle).strip(),
        )
    rows = conn.execute(
        "SELECT author_tag.id_author, author_tag.id_tag FROM author_tag "
        "INNER JOIN author ON author.id = author_tag.id_author WHERE author.id_lib = ?",
        (library_id,),
    )
    for author_id, tag_id in rows:
        if author_id in library.authors:
            library.authors[author_id].tag_ids.append(tag_id)


def _load_books(conn: sqlite3.Connection, library: Library, library_id: int) -> None:
    library.books = {}
    library.languages = []
    rows = conn.execute(
        "SELECT id, name, star, id_seria, num_in_seria, language, file, size, deleted, "
        "date, format, id_inlib, archive, first_author_id, keys FROM book WHERE id_lib=?",
        (library_id,),
    )
    for (
        book_id, name, stars, serial_id, num_in_serial, language, file_name, size,
        deleted, book_date, book_format, id_in_lib, archive, first_author_id, keys,
    ) in rows:
        name = _text(name)
        if not name:
            continue
        language = _text(language).lower()
        if language not in library.languages:
            library.languages.append(language)
        library.books[book_id] = Book(
            name=name,
            stars=_int(stars) & 0xFF,
            serial_id=_int(serial_id),
            num_in_serial=_int(num_in_serial),
            language_id=library.languages.index(language),
            file=_text(file_name),
            size=_int(size),
            deleted=bool(_int(deleted)),
            date=_date(book_date),
            format=_text(book_format),
            id_in_lib=_int(id_in_lib),
            archive=_text(archive),
            first_author_id=_int(first_author_id),
            keywords=_text(keys),
        )


def _load_book_links(conn: sqlite3.Connection, library: Library, library_id: int) -> None:
    rows = conn.execute(
        "SELECT id_book, id_genre FROM book_genre WHERE id_lib=?", (library_id,)
    )
    for book_id, genre_id in rows:
        genre_id = _int(genre_id) or UNSORTED_GENRE_ID
        if book_id in library.books:
            library.books[book_id].genre_ids.append(genre_id)

    rows = conn.execute(
        "SELECT book_tag.id_book, book_tag.id_tag FROM book_tag "
        "INNER JOIN book ON book.id = book_tag.id_book WHERE book.id_lib = ?",
        (library_id,),
    )
    for book_id, tag_id in rows:
        if book_id in library.books:
            library.books[book_id].tag_ids.append(tag_id)

    library.author_books = {}
    rows = conn.execute(
        "SELECT id_book, id_author FROM book_author WHERE id_lib=?", (library_id,)
    )
    for book_id, author_id in rows:
        if book_id in library.books and author_id in library.authors:
            library.author_books.setdefault(author_id, []).append(book_id)
            library.books[book_id].author_ids.append(author_id)

    for book_id, book in library.books.items():
        if not book.author_ids:
            book.author_ids.append(0)
            library.author_books.setdefault(0, []).append(book_id)


def load_library(conn: sqlite3.Connection, library_id: int) -> Library:
    """Read a library with all its books, authors, series, genres and tags.

    Books without a title are skipped; books without authors are linked to
    the unknown author, id 0.
    """
    if library_id == 0:
        raise ValueError("library id 0 names no library")
    row = conn.execute(
        "SELECT name, path, inpx, version, firstAuthor, woDeleted FROM lib WHERE id=?",
        (library_id,),
    ).fetchone()
    if row is None:
        raise KeyError(library_id)
    library = _library_from_row(row)
    _load_serials(conn, library, library_id)
    _load_authors(conn, library, library_id)
    _load_books(conn, library, library_id)
    _load_book_links(conn, library, library_id)
    library.loaded = True
    return library


def load_genres(conn: sqlite3.Connection) -> dict[int, Genre]:
    """Return every genre keyed by id, its keys split on ";"."""
    rows = conn.execute(
        "SELECT id, name, id_parent, sort_index, keys FROM genre ORDER BY id"
    )
    return {
        genre_id & 0xFFFF: Genre(
            name=_text(name),
            keys=[key for key in _text(keys).split(";") if key],
            parent_id=_int(parent_id) & 0xFFFF,
            sort_index=_int(sort_index) & 0xFFFF,
        )
        for genre_id, name, parent_id, sort_index, keys in rows
    }


def _remove_once(values: list[int], value: int) -> None:
    if value in values:
        values.remove(value)


def delete_tag(conn: sqlite3.Connection, library: Library, tag_id: int) -> None:
    """Remove a tag from the library in memory and from the database."""
    for book in library.books.values():
        _remove_once(book.tag_ids, tag_id)
    for serial in library.serials.values():
        _remove_once(serial.tag_ids, tag_id)
    for author in library.authors.values():
        _remove_once(author.tag_ids, tag_id)
    conn.execute("PRAGMA foreign_keys = ON")
    for table, column in (
        ("book_tag", "id_tag"),
        ("seria_tag", "id_tag"),
        ("author_tag", "id_tag"),
        ("tag", "id"),
    ):
        conn.execute(f"DELETE FROM {table} WHERE {column}=?", (tag_id,))
    conn.commit()