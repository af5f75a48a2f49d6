"""Reading the record lines of INP catalogue files inside an INPX collection."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum

SEPARATOR = "\x04"

_INT = re.compile(r"[+-]?[0-9]+")
_DATE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


class Field(Enum):
    """The columns an INP record may carry."""

    NAME = "TITLE"
    SERIA = "SERIES"
    NUM_IN_SERIA = "SERNO"
    FILE = "FILE"
    SIZE = "SIZE"
    ID_IN_LIB = "LIBID"
    DELETED = "DEL"
    FORMAT = "EXT"
    DATE = "DATE"
    LANGUAGE = "LANG"
    STAR = "STARS"
    KEYS = "KEYWORDS"
    AUTHORS = "AUTHOR"
    GENRES = "GENRE"
    FOLDER = "FOLDER"
    TAG = "TAG"
    TAG_SERIA = "TAGSERIES"
    TAG_AUTHOR = "TAGAUTHOR"


_DEFAULT_ORDER = (
    Field.AUTHORS,
    Field.GENRES,
    Field.NAME,
    Field.SERIA,
    Field.NUM_IN_SERIA,
    Field.FILE,
    Field.SIZE,
    Field.ID_IN_LIB,
    Field.DELETED,
    Field.FORMAT,
    Field.DATE,
    Field.LANGUAGE,
    Field.STAR,
    Field.KEYS,
)


def default_fields() -> dict[Field, int]:
    """Column positions used when the collection has no STRUCTURE.INFO."""
    fields = {item: -1 for item in Field}
    fields.update({item: index for index, item in enumerate(_DEFAULT_ORDER)})
    return fields


def parse_structure(text: str) -> dict[Field, int]:
    """Read column positions from STRUCTURE.INFO; absent columns get -1."""
    fields = {item: -1 for item in Field}
    by_name = {item.value: item for item in Field}
    for line in text.split("\n"):
        for index, name in enumerate(line.upper().split(";")):
            if name in by_name:
                fields[by_name[name]] = index
    return fields


@dataclass
class InpRecord:
    """One book line of an INP file."""

    name: str = ""
    serial: str = ""
    num_in_serial: int = 0
    file: str = ""
    size: int = 0
    id_in_lib: int = 0
    deleted: bool = False
    format: str = ""
    date: date | None = None
    language: str = ""
    stars: int = 0
    keys: str = ""
    folder: str = ""
    authors: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()
    tags: str = ""
    serial_tags: str = ""
    author_tags: str = ""


def _to_int(text: str) -> int:
    if not _INT.fullmatch(text):
        return 0
    value = int(text)
    return value if -(2**31) <= value < 2**31 else 0


def _to_date(text: str) -> date | None:
    match = _DATE.fullmatch(text)
    if match is None:
        return None
    try:
        return date(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def _split(value: str) -> list[str]:
    return [part for part in value.split(":") if part]


def parse_record(line: str, fields: Mapping[Field, int], default_folder: str) -> InpRecord:
    """Parse one line of an INP file.

    Fields are separated by the 0x04 character. The folder falls back to
    ``default_folder`` when the line does not name one. Raises ValueError
    for an empty line.
    """
    if not line:
        raise ValueError("empty INP line")
    parts = line.split(SEPARATOR)

    def raw(item: Field) -> str | None:
        index = fields.get(item, -1)
        if 0 <= index < len(parts):
            return parts[index]
        return None

    def text(item: Field) -> str:
        value = raw(item)
        return "" if value is None else value.strip()

    genres: list[str] = []
    for genre in _split(raw(Field.GENRES) or ""):
        genre = genre.strip()
        if genres or genre:
            if genre or not genres:
                genres.append(genre)
        else:
            genres.append(genre)

    folder_value = raw(Field.FOLDER)
    return InpRecord(
        name=text(Field.NAME),
        serial=text(Field.SERIA),
        num_in_serial=_to_int(text(Field.NUM_IN_SERIA)),
        file=text(Field.FILE),
        size=_to_int(text(Field.SIZE)),
        id_in_lib=_to_int(text(Field.ID_IN_LIB)),
        deleted=_to_int(text(Field.DELETED)) > 0,
        format=text(Field.FORMAT),
        date=_to_date(text(Field.DATE)),
        language=text(Field.LANGUAGE)[:2],
        stars=_to_int(text(Field.STAR)),
        keys=text(Field.KEYS),
        folder=default_folder if folder_value is None else folder_value.strip(),
        authors=tuple(_split(raw(Field.AUTHORS) or "")),
        genres=tuple(genres),
        tags=text(Field.TAG),
        serial_tags=text(Field.TAG_SERIA),
        author_tags=text(Field.TAG_AUTHOR),
    )


def split_tags(value: str, known_tags: Mapping[str, int]) -> list[int]:
    """Return the ids of the known tags in a colon separated list."""
    return [known_tags[name] for name in _split(value.strip()) if name in known_tags]


def is_unknown_author(name: str) -> bool:
    """Tell whether an author entry is a placeholder for an unknown author."""
    low = name.lower()
    return (
        "автор" in low and ("неизвестен" in low or "неизвестный" in low)
    ) or low == "неизвестно"