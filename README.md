# freelib

Keep a catalogue of e-book collections in an SQLite database. A library is
either a directory of FB2 and EPUB books (loose or packed in zip archives) or
a collection described by an INPX index. freelib reads the titles, authors,
series, genres, languages and tags of the books and stores them so they can
be loaded back into memory and browsed from Python.

## Installing

```
pip install .
```

The package needs nothing beyond the Python standard library.

## Using it

```python
from freelib.db import connect, create_schema
from freelib.libraries import LibraryManager
from freelib.models import Library
from freelib.importer import Importer
from freelib.scanner import UpdateType
from freelib.store import load_library

conn = connect("books.sqlite")
create_schema(conn)

manager = LibraryManager(conn)
library_id = manager.add_library(
    Library(name="Books", path="/srv/books", inpx="/srv/books/collection.inpx")
)

importer = Importer(conn, library_id, "/srv/books", "/srv/books/collection.inpx",
                    UpdateType.NEW, False, False, None, print)
importer.process()

library = load_library(conn, library_id)
for book_id, book in library.books.items():
    print(book_id, book.name)
```

### Modules

- `freelib.db` – `connect(path)` opens the database with foreign keys on;
  `create_schema(conn)` creates the tables.
- `freelib.libraries` – `LibraryManager` adds, updates and deletes rows of the
  library table (`add_library`, `update_library`, `delete_library`,
  `library_version`, `unique_name`). `copy_into_library(path, files)` copies
  files from outside a library folder into it, renaming on clashes, and
  `server_urls(id, port)` builds the OPDS and HTTP addresses of a library.
- `freelib.importer` – `Importer.process()` reads an INPX collection, or scans
  the book folder when no INPX file is given, or adds just the given files.
  `Importer.stop()` may be called from another thread to end it early.
- `freelib.scanner` – `Scanner` walks folders and zip archives for FB2, EPUB
  and `.fbd`-described books.
- `freelib.catalog` – `Catalog` writes books, authors, series, genres and tags
  of one library.
- `freelib.inpx` – parsing of `STRUCTURE.INFO` and INP record lines.
- `freelib.metadata` – `parse_fb2` and `parse_epub` read a book's own metadata.
- `freelib.store` – `list_libraries`, `load_library`, `load_genres` and
  `delete_tag`.
- `freelib.bookfiles` – `read_book_file` fetches a book's bytes from the
  folder or its archive, `load_annotation` fills in the annotation and cover
  image, `name_from_inpx` reads a collection's name from `COLLECTION.INFO`.

### Update types

- `UpdateType.NEW` keeps what is stored and skips INP files and books
  (by their id in the collection) that are already there.
- `UpdateType.FULL` removes the library's books, authors and series first.
- `UpdateType.DEL_AND_NEW` marks the library's books deleted first; books
  found again lose the mark, and a folder scan then drops those still marked.

### File name templates

`Library.fill_params` expands templates used to name books:

- `%a` author, `%b` title, `%s` series, `%abbrs` series abbreviation
- `%nx` number in series padded to x digits
- `%nl`, `%nf`, `%nm` last, first and middle name; `%li`, `%fi`, `%mi` their initials
- `%app_dir` program directory

`Library.fill_file_params` also knows `%f` (full path of the book file),
`%fn` (file name without directory and extension) and `%d` (its directory).
A part in square brackets is dropped when a value it uses is missing, so
`%a/[%s/]%b` leaves out the series directory for books outside a series.

## What it does not do

freelib is a library for Python code only. It installs no command, has no
graphical interface, and runs no OPDS or HTTP server: `server_urls` only
builds the addresses such a server would use.

## Running the tests

```
pip install .[test]
pytest
```