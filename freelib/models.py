"""Core data types of a book library and file name templates for its books."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

UNKNOWN_AUTHOR = "unknown author"

_DIGITS = "0123456789"


@dataclass(unsafe_hash=True)
class Author:
    """A book author; two authors are equal when all three names match."""

    first_name: str = ""
    last_name: str = ""
    middle_name: str = ""
    tag_ids: list[int] = field(default_factory=list, compare=False, hash=False)

    def display_name(self) -> str:
        """Return "Last First Middle", or a placeholder when all are empty."""
        name = f"{self.last_name} {self.first_name} {self.middle_name}".strip()
        return name or UNKNOWN_AUTHOR


def parse_author(text: str) -> Author:
    """Build an author from a "Last,First,Middle" string."""
    parts = [part.strip() for part in text.split(",")]
    parts += [""] * (3 - len(parts))
    return Author(first_name=parts[1], last_name=parts[0], middle_name=parts[2])


@dataclass
class Book:
    """One book of a library."""

    name: str = ""
    annotation: str = ""
    image: str = ""
    archive: str = ""
    isbn: str = ""
    date: date | None = None
    format: str = ""
    file: str = ""
    keywords: str = ""
    genre_ids: list[int] = field(default_factory=list)
    author_ids: list[int] = field(default_factory=list)
    tag_ids: list[int] = field(default_factory=list)
    id_in_lib: int = 0
    serial_id: int = 0
    first_author_id: int = 0
    num_in_serial: int = 0
    size: int = 0
    stars: int = 0
    language_id: int = 0
    deleted: bool = False


@dataclass
class Serial:
    """A book series."""

    name: str = ""
    tag_ids: list[int] = field(default_factory=list)


@dataclass
class Genre:
    """A genre with the keys that identify it in book files."""

    name: str = ""
    keys: list[str] = field(default_factory=list)
    parent_id: int = 0
    sort_index: int = 0


def _application_dir() -> str:
    if sys.argv and sys.argv[0]:
        return os.path.dirname(os.path.abspath(sys.argv[0]))
    return os.getcwd()


@dataclass
class Library:
    """A library with its books, authors and series held in memory."""

    name: str = ""
    path: str = ""
    inpx: str = ""
    version: str = ""
    first_author_only: bool = False
    without_deleted: bool = False
    loaded: bool = False
    authors: dict[int, Author] = field(default_factory=dict)
    author_books: dict[int, list[int]] = field(default_factory=dict)
    books: dict[int, Book] = field(default_factory=dict)
    serials: dict[int, Serial] = field(default_factory=dict)
    languages: list[str] = field(default_factory=list)

    def find_author(self, author: Author) -> int:
        """Return the id of an author with the same names, or 0."""
        return next((key for key, known in self.authors.items() if known == author), 0)

    def find_serial(self, name: str) -> int:
        """Return the id of the series with this name, or 0."""
        return next((key for key, serial in self.serials.items() if serial.name == name), 0)

    def serial_abbreviation(self, book_id: int) -> str:
        """Return the lower-case initials of the words of the book's series."""
        book = self.books.get(book_id, Book())
        if book.serial_id == 0:
            return ""
        name = self.serials.get(book.serial_id, Serial()).name
        return "".join(word[0] for word in name.split(" ") if word).lower()

    def fill_params(
        self,
        template: str,
        book_id: int,
        nested: bool = False,
        app_dir: str | None = None,
    ) -> str:
        """Expand the %-placeholders of a template for one book.

        A block in square brackets vanishes when a placeholder in it has no value.
        """
        if app_dir is None:
            app_dir = _application_dir()
        result = self._expand_blocks(template, book_id, app_dir)

        book = self.books.get(book_id, Book())
        first_author = self.authors.get(book.first_author_id, Author())

        if "%s" in result:
            if book.serial_id == 0:
                if nested:
                    return ""
                result = result.replace("%s", "")
            else:
                result = result.replace("%s", self.serials.get(book.serial_id, Serial()).name)

        if nested:
            checks = (
                (("%fi", "%nf"), first_author.first_name),
                (("%mi", "%nm"), first_author.middle_name),
                (("%li", "%nl"), first_author.last_name),
            )
            for tokens, value in checks:
                if any(token in result for token in tokens) and not value:
                    return ""
            if ("%s" in result or "%abbrs" in result) and book.serial_id == 0:
                return ""
        else:
            result = result.replace("%app_dir", app_dir + "/")
            result = result.replace("%abbrs", self.serial_abbreviation(book_id))
            result = result.replace("%fi", first_author.first_name[:1])
            result = result.replace("%mi", first_author.middle_name[:1])
            result = result.replace("%li", first_author.last_name[:1])
            result = result.replace("%nf", first_author.first_name)
            result = result.replace("%nm", first_author.middle_name)
            result = result.replace("%nl", first_author.last_name)
            result = result.replace("%b", book.name)
            result = result.replace("%a", first_author.display_name())
            for old in ("  ", "/ ", "/.", "////", "///", "//"):
                result = result.replace(old, "/" if old.startswith("/") else " ")

        index = result.find("%n")
        if index >= 0:
            digit = result[index + 2 : index + 3]
            width = int(digit) if digit and digit in _DIGITS else 0
            if book.num_in_serial == 0:
                if nested:
                    return ""
                result = result.replace(f"%n{width}", "")
            else:
                number = str(book.num_in_serial)
                token = "%n" + (str(width) if width > 0 else "")
                padding = "0" * (width - len(number)) if width > 0 else ""
                result = result.replace(token, padding + number)

        return result

    def _expand_blocks(self, template: str, book_id: int, app_dir: str) -> str:
        result = template
        i = 0
        while i < len(result) - 1:
            if result[i] == "[":
                depth = 0
                for j in range(i + 1, len(result)):
                    if result[j] == "[":
                        depth += 1
                    if result[j] == "]":
                        if depth == 0:
                            inner = self.fill_params(result[i + 1 : j], book_id, True, app_dir)
                            result = result[:i] + inner + result[j + 1 :]
                            i += len(inner) - 1
                            break
                        depth -= 1
            i += 1
        return result

    def fill_file_params(
        self,
        template: str,
        book_id: int,
        book_path: str | os.PathLike[str],
        app_dir: str | None = None,
    ) -> str:
        """Expand %fn, %f and %d from the book's file path, then the other placeholders."""
        absolute = os.path.abspath(os.fspath(book_path))
        result = (
            template.replace("%fn", Path(absolute).stem)
            .replace("%f", absolute)
            .replace("%d", os.path.dirname(absolute))
        )
        return self.fill_params(result, book_id, False, app_dir)