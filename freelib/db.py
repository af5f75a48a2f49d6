"""Opening the library database and creating its tables."""

from __future__ import annotations

import os
import sqlite3

_SCHEMA = """
CREATE TABLE IF NOT EXISTS lib (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT '',
    path TEXT NOT NULL DEFAULT '',
    inpx TEXT NOT NULL DEFAULT '',
    version TEXT NOT NULL DEFAULT '',
    firstAuthor INTEGER NOT NULL DEFAULT 0,
    woDeleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS seria (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    id_lib INTEGER NOT NULL REFERENCES lib(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS seria_name ON seria(name, id_lib);

CREATE TABLE IF NOT EXISTS author (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name1 TEXT,
    name2 TEXT,
    name3 TEXT,
    id_lib INTEGER NOT NULL REFERENCES lib(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS author_lib ON author(id_lib);

CREATE TABLE IF NOT EXISTS book (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    star INTEGER NOT NULL DEFAULT 0,
    id_seria INTEGER REFERENCES seria(id) ON DELETE SET NULL,
    num_in_seria INTEGER NOT NULL DEFAULT 0,
    language TEXT,
    file TEXT,
    size INTEGER NOT NULL DEFAULT 0,
    deleted INTEGER NOT NULL DEFAULT 0,
    date TEXT,
    keys TEXT,
    id_inlib INTEGER NOT NULL DEFAULT 0,
    id_lib INTEGER NOT NULL REFERENCES lib(id) ON DELETE CASCADE,
    format TEXT,
    archive TEXT,
    first_author_id INTEGER
);
CREATE INDEX IF NOT EXISTS book_lib ON book(id_lib);
CREATE INDEX IF NOT EXISTS book_file ON book(file, archive);

CREATE TABLE IF NOT EXISTS book_author (
    id_book INTEGER NOT NULL REFERENCES book(id) ON DELETE CASCADE,
    id_author INTEGER NOT NULL REFERENCES author(id) ON DELETE CASCADE,
    id_lib INTEGER NOT NULL REFERENCES lib(id) ON DELETE CASCADE,
    PRIMARY KEY (id_book, id_author)
);

CREATE TABLE IF NOT EXISTS genre (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    id_parent INTEGER NOT NULL DEFAULT 0,
    sort_index INTEGER NOT NULL DEFAULT 0,
    keys TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS book_genre (
    id_book INTEGER NOT NULL REFERENCES book(id) ON DELETE CASCADE,
    id_genre INTEGER NOT NULL,
    id_lib INTEGER NOT NULL REFERENCES lib(id) ON DELETE CASCADE,
    PRIMARY KEY (id_book, id_genre)
);

CREATE TABLE IF NOT EXISTS tag (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS book_tag (
    id_book INTEGER NOT NULL REFERENCES book(id) ON DELETE CASCADE,
    id_tag INTEGER NOT NULL REFERENCES tag(id) ON DELETE CASCADE,
    PRIMARY KEY (id_book, id_tag)
);

CREATE TABLE IF NOT EXISTS seria_tag (
    id_seria INTEGER NOT NULL REFERENCES seria(id) ON DELETE CASCADE,
    id_tag INTEGER NOT NULL REFERENCES tag(id) ON DELETE CASCADE,
    PRIMARY KEY (id_seria, id_tag)
);

CREATE TABLE IF NOT EXISTS author_tag (
    id_author INTEGER NOT NULL REFERENCES author(id) ON DELETE CASCADE,
    id_tag INTEGER NOT NULL REFERENCES tag(id) ON DELETE CASCADE,
    PRIMARY KEY (id_author, id_tag)
);
"""


def connect(path: str | os.PathLike[str]) -> sqlite3.Connection:
    """Open the database at ``path`` with foreign keys enforced."""
    conn = sqlite3.connect(os.fspath(path))
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table the library needs; existing tables are kept."""
    conn.executescript(_SCHEMA)
    conn.commit()