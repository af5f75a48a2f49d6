from datetime import date

import pytest

from freelib.catalog import Catalog, relative_name
from freelib.db import connect, create_schema
from freelib.inpx import InpRecord
from freelib.models import Author

GENRE_ID = 5


@pytest.fixture
def conn():
    connection = connect(":memory:")
    create_schema(connection)
    connection.execute("INSERT INTO lib(id, name) VALUES (1, 'test')")
    connection.execute(
        "INSERT INTO genre(id, name, keys) VALUES (?, 'History', 'sf_history;sf')", (GENRE_ID,)
    )
    connection.execute("INSERT INTO tag(id, name) VALUES (3, ' favourite ')")
    connection.commit()
    yield connection
    connection.close()


@pytest.fixture
def catalog(conn):
    return Catalog(conn, 1)


def _record(**changes):
    values = dict(
        name="Title",
        serial="Saga",
        num_in_serial=2,
        file="f1",
        size=100,
        id_in_lib=7,
        format="fb2",
        date=date(2021, 3, 4),
        language="ru",
        stars=4,
        keys="k",
        folder="a.inp",
    )
    values.update(changes)
    return InpRecord(**values)


def test_loads_tags_and_genre_keys(catalog):
    assert catalog.tags == {"favourite": 3}
    assert catalog.genre_keys == {"sf_history": GENRE_ID, "sf": GENRE_ID}


def test_add_seria_blank_name(catalog):
    assert catalog.add_seria("   ") == 0


def test_add_seria_reuses_existing(conn, catalog):
    first = catalog.add_seria(" Saga ", [3])
    assert catalog.add_seria("Saga") == first
    rows = conn.execute("SELECT name FROM seria").fetchall()
    assert rows == [("Saga",)]
    assert conn.execute("SELECT id_seria, id_tag FROM seria_tag").fetchall() == [(first, 3)]


def test_add_book_stores_fields(conn, catalog):
    record = _record()
    book_id = catalog.add_book(record, [3])
    row = conn.execute(
        "SELECT name, star, id_seria, num_in_seria, language, file, size, deleted, date, "
        "keys, id_inlib, id_lib, format, archive FROM book WHERE id=?",
        (book_id,),
    ).fetchone()
    assert row == (
        record.name,
        record.stars,
        catalog.add_seria(record.serial),
        record.num_in_serial,
        record.language,
        record.file,
        record.size,
        0,
        record.date.isoformat(),
        record.keys,
        record.id_in_lib,
        1,
        record.format,
        record.folder,
    )
    assert conn.execute("SELECT id_book, id_tag FROM book_tag").fetchall() == [(book_id, 3)]


def test_add_book_without_serial_stores_null(conn, catalog):
    book_id = catalog.add_book(_record(serial="", date=None))
    row = conn.execute("SELECT id_seria, date FROM book WHERE id=?", (book_id,)).fetchone()
    assert row == (None, None)


def test_add_author_links_and_caches(conn, catalog):
    book_id = catalog.add_book(_record())
    author = Author(first_name="Ivan", last_name="Petrov", middle_name="Ilyich")
    author_id = catalog.add_author(author, book_id, True, [3])
    assert catalog.add_author(Author("Ivan", "Petrov", "Ilyich"), book_id) == author_id
    assert conn.execute("SELECT count(*) FROM author").fetchone()[0] == 1
    assert conn.execute(
        "SELECT name1, name2, name3 FROM author WHERE id=?", (author_id,)
    ).fetchone() == ("Petrov", "Ivan", "Ilyich")
    assert conn.execute(
        "SELECT first_author_id FROM book WHERE id=?", (book_id,)
    ).fetchone()[0] == author_id
    assert conn.execute("SELECT id_book, id_author FROM book_author").fetchall() == [
        (book_id, author_id)
    ]
    assert conn.execute("SELECT id_author, id_tag FROM author_tag").fetchall() == [(author_id, 3)]


def test_new_catalog_finds_stored_authors(conn, catalog):
    book_id = catalog.add_book(_record())
    author = Author(first_name="Anna", last_name="Ivanova")
    author_id = catalog.add_author(author, book_id)
    conn.commit()
    again = Catalog(conn, 1)
    assert again.add_author(Author(first_name="Anna", last_name="Ivanova"), book_id) == author_id


def test_second_author_does_not_change_first(conn, catalog):
    book_id = catalog.add_book(_record())
    first = catalog.add_author(Author(first_name="A", last_name="One"), book_id, True)
    catalog.add_author(Author(first_name="B", last_name="Two"), book_id, False)
    assert conn.execute(
        "SELECT first_author_id FROM book WHERE id=?", (book_id,)
    ).fetchone()[0] == first


def test_add_genre_known_key(conn, catalog):
    book_id = catalog.add_book(_record())
    assert catalog.add_genre(book_id, "SF History") == GENRE_ID
    assert conn.execute("SELECT id_book, id_genre, id_lib FROM book_genre").fetchall() == [
        (book_id, GENRE_ID, 1)
    ]


def test_add_genre_unknown_key(conn, catalog):
    book_id = catalog.add_book(_record())
    assert catalog.add_genre(book_id, "nothing_like_it") == 0
    assert conn.execute("SELECT count(*) FROM book_genre").fetchone()[0] == 0


def test_undelete_existing(conn, catalog):
    book_id = catalog.add_book(_record(deleted=True))
    assert conn.execute("SELECT deleted FROM book WHERE id=?", (book_id,)).fetchone()[0] == 1
    assert catalog.undelete_existing("f1", "a.inp") is True
    assert conn.execute("SELECT deleted FROM book WHERE id=?", (book_id,)).fetchone()[0] == 0


def test_undelete_missing_book(catalog):
    assert catalog.undelete_existing("absent", "") is False


def test_relative_name_forward_slash():
    assert relative_name("/lib/books/a.fb2", "/lib") == "books/a.fb2"


def test_relative_name_backslash():
    assert relative_name("C:\\lib\\a.fb2", "C:\\lib") == "a.fb2"


def test_relative_name_same_path():
    assert relative_name("/lib", "/lib") == ""