from __future__ import annotations

import io
import zlib
from pathlib import Path
from typing import Callable, Mapping, Sequence
import sys

import pytest
from pypdf import PdfWriter
from pypdf.generic import ArrayObject, DictionaryObject, FloatObject, NameObject, NumberObject, StreamObject

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

FONTS = {
    "F1": "/Helvetica",
    "F2": "/Helvetica-Bold",
    "F3": "/Helvetica-Oblique",
}

PageSpec = Mapping[str, Sequence]


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _text_operations(texts: Sequence[tuple]) -> list[bytes]:
    operations = []
    for item in texts:
        text, x, y = item[:3]
        size = item[3] if len(item) > 3 else 12
        font = item[4] if len(item) > 4 else "F1"
        operations.append(f"BT /{font} {size} Tf {x} {y} Td ({_escape(text)}) Tj ET".encode("latin-1"))
    return operations


def _image_stream(spec: Mapping[str, object]) -> StreamObject:
    stream = StreamObject()
    stream.update(
        {
            NameObject("/Type"): NameObject("/XObject"),
            NameObject("/Subtype"): NameObject("/Image"),
            NameObject("/Width"): NumberObject(spec["width"]),
            NameObject("/Height"): NumberObject(spec["height"]),
            NameObject("/ColorSpace"): NameObject(spec.get("colorspace", "/DeviceRGB")),
            NameObject("/BitsPerComponent"): NumberObject(8),
        }
    )
    data = spec["data"]
    image_filter = spec.get("filter", "/FlateDecode")
    if image_filter == "/FlateDecode":
        data = zlib.compress(data)
    if image_filter:
        stream[NameObject("/Filter")] = NameObject(image_filter)
    stream._data = data
    return stream


def _form_stream(writer: PdfWriter, spec: Mapping[str, object], fonts: DictionaryObject) -> StreamObject:
    matrix = spec.get("matrix", (1, 0, 0, 1, 0, 0))
    resources = DictionaryObject({NameObject("/Font"): fonts})
    operations = _text_operations(spec.get("texts", []))
    operations.extend(_image_operations(writer, spec.get("images", []), resources))
    stream = StreamObject()
    stream.update(
        {
            NameObject("/Type"): NameObject("/XObject"),
            NameObject("/Subtype"): NameObject("/Form"),
            NameObject("/BBox"): ArrayObject([NumberObject(value) for value in (0, 0, 612, 792)]),
            NameObject("/Matrix"): ArrayObject([FloatObject(value) for value in matrix]),
            NameObject("/Resources"): resources,
        }
    )
    stream._data = b"\n".join(operations)
    return stream


def _image_operations(
    writer: PdfWriter, images: Sequence[Mapping], resources: DictionaryObject
) -> list[bytes]:
    if not images:
        return []
    xobjects = resources.setdefault(NameObject("/XObject"), DictionaryObject())
    operations = []
    for image in images:
        xobjects[NameObject(f"/{image['name']}")] = writer._add_object(_image_stream(image))
        matrix = " ".join(str(value) for value in image["matrix"])
        operations.append(f"q {matrix} cm /{image['name']} Do Q".encode("latin-1"))
    return operations


def build_pdf(
    pages: Sequence[PageSpec],
    metadata: Mapping[str, str] | None = None,
    password: str | None = None,
) -> bytes:
    """Build a PDF where each page spec may carry ``texts``, ``images``, ``forms`` and ``content``.

    ``texts`` entries are ``(text, x, y[, size[, font]])``, each written in its
    own ``BT``/``ET`` block; ``images`` entries are mappings with ``name``,
    ``width``, ``height``, ``data`` and a ``matrix`` placing the unit square on
    the page. ``forms`` entries are Form XObjects with a ``name``, an optional
    form ``matrix`` and their own ``texts``/``images``. ``content`` is raw
    content-stream bytes appended verbatim, using the ``F1``-``F3`` fonts.
    """

    writer = PdfWriter()
    font_refs = {}
    for key, base_font in FONTS.items():
        font_dict = DictionaryObject(
            {
                NameObject("/Type"): NameObject("/Font"),
                NameObject("/Subtype"): NameObject("/Type1"),
                NameObject("/BaseFont"): NameObject(base_font),
            }
        )
        font_refs[key] = writer._add_object(font_dict)

    for spec in pages:
        page = writer.add_blank_page(width=spec.get("width", 612), height=spec.get("height", 792))
        if not any(spec.get(key) for key in ("texts", "images", "forms", "content")):
            continue

        fonts = DictionaryObject({NameObject(f"/{k}"): v for k, v in font_refs.items()})
        resources = DictionaryObject({NameObject("/Font"): fonts})
        operations = _text_operations(spec.get("texts", []))
        operations.extend(_image_operations(writer, spec.get("images", []), resources))
        for form in spec.get("forms", []):
            xobjects = resources.setdefault(NameObject("/XObject"), DictionaryObject())
            xobjects[NameObject(f"/{form['name']}")] = writer._add_object(_form_stream(writer, form, fonts))
            operations.append(f"/{form['name']} Do".encode("latin-1"))
        if spec.get("content"):
            operations.append(spec["content"])
        page[NameObject("/Resources")] = resources

        content = StreamObject()
        content._data = b"\n".join(operations)
        content[NameObject("/Length")] = NumberObject(len(content._data))
        page[NameObject("/Contents")] = writer._add_object(content)

    if metadata:
        writer.add_metadata(dict(metadata))
    if password is not None:
        writer.encrypt(password)

    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def table_rows(rows: Sequence[Sequence[str]], *, left: int = 72, top: int = 700) -> list[tuple]:
    """Lay out *rows* as a grid of separately positioned text runs."""

    texts = []
    for row_index, row in enumerate(rows):
        for column_index, value in enumerate(row):
            texts.append((value, left + column_index * 120, top - row_index * 24))
    return texts


def rgb_image(name: str, width: int, height: int, matrix=(100, 0, 0, 50, 72, 400)) -> dict:
    return {
        "name": name,
        "width": width,
        "height": height,
        "data": bytes([200, 30, 30]) * (width * height),
        "matrix": matrix,
    }


@pytest.fixture()
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture()
def grid_texts() -> Callable[..., list[tuple]]:
    return table_rows


@pytest.fixture()
def image_spec() -> Callable[..., dict]:
    return rgb_image


@pytest.fixture()
def fifty_words() -> str:
    return " ".join(f"word{index}" for index in range(50))


@pytest.fixture()
def text_pdf(fifty_words: str) -> bytes:
    return build_pdf(
        [{"texts": [(fifty_words, 72, 720)]}],
        metadata={"/Title": "Quarterly Report", "/Author": "Jane Doe"},
    )


@pytest.fixture()
def text_pdf_path(tmp_path: Path, text_pdf: bytes) -> Path:
    path = tmp_path / "report.pdf"
    path.write_bytes(text_pdf)
    return path


@pytest.fixture()
def table_pdf() -> bytes:
    grid = [["Name", "Qty", "Price"], ["Apple", "3", "1.20"], ["Pear", "5", "0.80"]]
    return build_pdf(
        [
            {"texts": [("Introduction to the inventory", 72, 720)]},
            {"texts": table_rows(grid)},
        ],
        metadata={"/Title": "Inventory", "/Author": "Stock Team"},
    )
