import io
import zipfile

from freelib.metadata import BookMetadata, parse_epub, parse_fb2
from freelib.models import Author

FB2 = """<?xml version="1.0" encoding="utf-8"?>
<FictionBook xmlns="urn:example:fictionbook">
<description>
<title-info>
<genre>sf_fantasy</genre>
<genre> prose_classic </genre>
<author><first-name> Ivan </first-name><middle-name>Petrovich</middle-name><last-name>Sidorov</last-name></author>
<author><first-name>Anna</first-name><last-name>Karenina</last-name></author>
<book-title>The Road</book-title>
<lang>en-US</lang>
<sequence name=" Long Way " number="3"/>
</title-info>
<publish-info><isbn>978-0-00-000000-0</isbn></publish-info>
</description>
<body><p>Some text of the book.</p></body>
</FictionBook>
"""

CONTAINER = """<?xml version="1.0"?>
<container version="1.0" xmlns="urn:example:container">
<rootfiles>
<rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
<rootfile full-path="OEBPS/other.opf" media-type="application/oebps-package+xml"/>
</rootfiles>
</container>
"""

OPF = """<?xml version="1.0"?>
<package xmlns="urn:example:opf" xmlns:dc="urn:example:dc">
<metadata>
<dc:title> War and Peace </dc:title>
<dc:language>ru-RU</dc:language>
<dc:creator>Lev Nikolayevich Tolstoy</dc:creator>
<dc:creator>Anonymous</dc:creator>
<dc:subject>prose_classic</dc:subject>
</metadata>
</package>
"""

OTHER_OPF = """<?xml version="1.0"?>
<package xmlns="urn:example:opf" xmlns:dc="urn:example:dc">
<metadata><dc:title>Wrong</dc:title></metadata>
</package>
"""


def make_epub(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, text in files.items():
            archive.writestr(name, text)
    return buffer.getvalue()


def test_fb2_fields():
    meta = parse_fb2(FB2.encode("utf-8"))
    assert meta.title == "The Road"
    assert meta.language == "en"
    assert meta.serial == "Long Way"
    assert meta.num_in_serial == 3
    assert meta.isbn == "978-0-00-000000-0"


def test_fb2_authors_and_genres():
    meta = parse_fb2(FB2.encode("utf-8"))
    assert meta.authors == [
        Author(first_name="Ivan", last_name="Sidorov", middle_name="Petrovich"),
        Author(first_name="Anna", last_name="Karenina"),
    ]
    assert meta.genres == ["sf_fantasy", "prose_classic"]


def test_fb2_truncated_keeps_description():
    data = FB2.encode("utf-8")
    cut = data[: data.index(b"<body>") + 10]
    full = parse_fb2(data)
    partial = parse_fb2(cut)
    assert partial.title == full.title
    assert partial.authors == full.authors
    assert partial.isbn == full.isbn


def test_fb2_windows_1251():
    text = FB2.replace("utf-8", "windows-1251").replace("The Road", "Дорога")
    meta = parse_fb2(text.encode("cp1251"))
    assert meta.title == "Дорога"


def test_fb2_bad_sequence_number():
    text = FB2.replace('number="3"', 'number="x"')
    assert parse_fb2(text.encode("utf-8")).num_in_serial == 0


def test_fb2_without_sequence():
    text = FB2.replace('<sequence name=" Long Way " number="3"/>', "")
    meta = parse_fb2(text.encode("utf-8"))
    assert (meta.serial, meta.num_in_serial) == ("", 0)


def test_fb2_garbage():
    assert parse_fb2(b"not xml at all") == BookMetadata()


def test_epub_fields():
    data = make_epub(
        {
            "META-INF/container.xml": CONTAINER,
            "OEBPS/content.opf": OPF,
            "OEBPS/other.opf": OTHER_OPF,
        }
    )
    meta = parse_epub(data)
    assert meta.title == "War and Peace"
    assert meta.language == "ru"
    assert meta.genres == ["prose_classic"]
    assert meta.authors[0] == Author(
        first_name="Lev", middle_name="Nikolayevich", last_name="Tolstoy"
    )
    assert meta.authors[1] == Author(first_name="Anonymous")


def test_epub_without_container():
    data = make_epub({"OEBPS/content.opf": OPF})
    assert parse_epub(data) == BookMetadata()


def test_epub_missing_package_file():
    data = make_epub({"META-INF/container.xml": CONTAINER})
    assert parse_epub(data) == BookMetadata()


def test_epub_not_a_zip():
    assert parse_epub(b"plain bytes") == BookMetadata()