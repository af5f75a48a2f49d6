import sqlite3

import pytest

from freelib.db import connect, create_schema

TABLES = {
    "lib",
    "seria",
    "author",
    "book",
    "book_author",
    "genre",
    "book_genre",
    "tag",
    "book_tag",
    "seria_tag",
    "author_tag",
}


@pytest.fixture
def conn(tmp_path):
    connection = connect(tmp_path / "lib.sqlite")
    create_schema(connection)
    yield connection
    connection.close()


def _tables(conn):
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    return {row[0] for row in rows}


def test_schema_has_all_tables(conn):
    assert TABLES <= _tables(conn)


def test_create_schema_is_idempotent(conn):
    conn.execute("INSERT INTO lib(name) VALUES ('kept')")
    conn.commit()
    create_schema(conn)
    assert conn.execute("SELECT name FROM lib").fetchall() == [("kept",)]


def test_foreign_keys_enabled(conn):
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_deleting_library_cascades(conn):
    lib_id = conn.execute("INSERT INTO lib(name) VALUES ('a')").lastrowid
    book_id = conn.execute(
        "INSERT INTO book(name, id_lib) VALUES ('b', ?)", (lib_id,)
    ).lastrowid
    author_id = conn.execute(
        "INSERT INTO author(name1, id_lib) VALUES ('x', ?)", (lib_id,)
    ).lastrowid
    conn.execute(
        "INSERT INTO book_author(id_book, id_author, id_lib) VALUES (?, ?, ?)",
        (book_id, author_id, lib_id),
    )
    conn.execute("DELETE FROM lib WHERE id=?", (lib_id,))
    assert conn.execute("SELECT COUNT(*) FROM book").fetchone()[0] == 0
    assert conn.execute("SELECT COUNT(*) FROM author").fetchone()[0] == 0
    assert conn.execute("SELECT COUNT(*) FROM book_author").fetchone()[0] == 0


def test_book_author_insert_or_ignore_keeps_one_row(conn):
    lib_id = conn.execute("INSERT INTO lib(name) VALUES ('a')").lastrowid
    book_id = conn.execute(
        "INSERT INTO book(name, id_lib) VALUES ('b', ?)", (lib_id,)
    ).lastrowid
    author_id = conn.execute(
        "INSERT INTO author(name1, id_lib) VALUES ('x', ?)", (lib_id,)
    ).lastrowid
    for _ in range(2):
        conn.execute(
            "INSERT OR IGNORE INTO book_author(id_book, id_author, id_lib) VALUES (?, ?, ?)",
            (book_id, author_id, lib_id),
        )
    assert conn.execute("SELECT COUNT(*) FROM book_author").fetchone()[0] == 1


def test_book_needs_existing_library(conn):
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("INSERT INTO book(name, id_lib) VALUES ('b', 999)")


def test_data_survives_reopen(tmp_path):
    path = tmp_path / "db.sqlite"
    first = connect(path)
    create_schema(first)
    first.execute("INSERT INTO tag(name) VALUES ('fav')")
    first.commit()
    first.close()
    second = connect(path)
    assert second.execute("SELECT name FROM tag").fetchall() == [("fav",)]
    second.close()