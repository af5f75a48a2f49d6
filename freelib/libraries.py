"""Adding, changing and removing libraries, and bringing book files into them."""

from __future__ import annotations

import os
import shutil
import sqlite3
from collections.abc import Iterable

from .models import Library


class LibraryManager:
    """Keeps the ``lib`` table and an in-memory map of libraries in step."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.libraries: dict[int, Library] = {}
        rows = conn.execute(
            "SELECT id, name, path, inpx, version, firstAuthor, woDeleted FROM lib ORDER BY id"
        )
        for lib_id, name, path, inpx, version, first_author, wo_deleted in rows:
            self.libraries[lib_id] = Library(
                name=(name or "").strip(),
                path=(path or "").strip(),
                inpx=(inpx or "").strip(),
                version=(version or "").strip(),
                first_author_only=bool(first_author),
                without_deleted=bool(wo_deleted),
            )

    def unique_name(self, name: str) -> str:
        """Return ``name``, or ``name (n)`` with the first n not yet in use."""
        taken = {library.name for library in self.libraries.values()}
        result = name
        number = 1
        while result in taken:
            result = f"{name} ({number})"
            number += 1
        return result

    def add_library(self, library: Library) -> int:
        """Store a new library and return its id."""
        cursor = self.conn.execute(
            "INSERT INTO lib(name, path, inpx, firstAuthor, woDeleted) VALUES (?, ?, ?, ?, ?)",
            (
                library.name,
                library.path,
                library.inpx,
                int(library.first_author_only),
                int(library.without_deleted),
            ),
        )
        self.conn.commit()
        library_id = cursor.lastrowid
        self.libraries[library_id] = Library(
            name=library.name,
            path=library.path,
            inpx=library.inpx,
            first_author_only=library.first_author_only,
            without_deleted=library.without_deleted,
        )
        return library_id

    def update_library(self, library_id: int, library: Library) -> None:
        """Save the name, paths and import flags of an existing library."""
        if library_id not in self.libraries:
            raise KeyError(library_id)
        self.conn.execute(
            "UPDATE lib SET name=?, path=?, inpx=?, firstAuthor=?, woDeleted=? WHERE id=?",
            (
                library.name,
                library.path,
                library.inpx,
                int(library.first_author_only),
                int(library.without_deleted),
                library_id,
            ),
        )
        self.conn.commit()
        known = self.libraries[library_id]
        known.name = library.name
        known.path = library.path
        known.inpx = library.inpx
        known.first_author_only = library.first_author_only
        known.without_deleted = library.without_deleted

    def delete_library(self, library_id: int) -> int:
        """Remove a library with everything in it.

        Returns the id of the library to select next, or 0 when none is left.
        """
        if library_id == 0:
            return 0
        self.conn.execute("PRAGMA foreign_keys = ON")
        self.conn.execute("DELETE FROM lib WHERE id=?", (library_id,))
        self.conn.commit()
        self.conn.execute("VACUUM")
        self.libraries.pop(library_id, None)
        return next(iter(self.libraries), 0)

    def library_version(self, library_id: int) -> str:
        """Read the stored collection version and remember it on the library."""
        row = self.conn.execute(
            "SELECT version FROM lib WHERE id=?", (library_id,)
        ).fetchone()
        if row is None:
            raise KeyError(library_id)
        version = row[0] or ""
        if library_id in self.libraries:
            self.libraries[library_id].version = version
        return version


def copy_into_library(
    library_path: str | os.PathLike[str], files: Iterable[str | os.PathLike[str]]
) -> list[str]:
    """Copy files that lie outside the library into its folder.

    Name clashes get ``" (n)"`` appended to the base name. Returns the paths
    to import, in the order given.
    """
    root = os.fspath(library_path).rstrip("/")
    result = []
    for source in map(os.fspath, files):
        if source.startswith(root):
            result.append(source)
            continue
        base, _, extension = os.path.basename(source).partition(".")
        target = os.path.abspath(os.path.join(root, f"{base}.{extension}"))
        number = 1
        while os.path.exists(target):
            target = os.path.abspath(os.path.join(root, f"{base} ({number}).{extension}"))
            number += 1
        shutil.copy(source, target)
        result.append(target)
    return result


def server_urls(library_id: int, port: int) -> tuple[str, str]:
    """Return the OPDS and HTTP addresses of a library; empty for id 0."""
    if library_id == 0:
        return "", ""
    base = f"http://localhost:{port}"
    return f"{base}/opds_{library_id}", f"{base}/http_{library_id}"