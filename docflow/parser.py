"""PDF content extraction: positioned text, embedded images and tables."""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Iterator, Sequence

from pypdf import PasswordType, PdfReader
from pypdf.errors import DependencyError, FileNotDecryptedError, PdfReadError
from pypdf.generic import (
    ArrayObject,
    ContentStream,
    DictionaryObject,
    EncodedStreamObject,
    IndirectObject,
    NameObject,
    StreamObject,
)

from .constants import BOLD_MARKERS, ITALIC_MARKERS, MAX_FILE_SIZE
from .exceptions import ParseError, ParseErrorCategory
from .fonts import FontInfo, font_resources
from .metadata import extract_metadata
from .models import ImageAsset, PageContent, ParsedContent, TextFragment
from .tables import detect_tables
from .utils import (
    is_rtl_text,
    normalise_text_content,
    normalise_whitespace,
    time_block,
)
from .validators import validate_source_bytes

LOGGER = logging.getLogger(__name__)

__all__ = [
    "open_reader",
    "parse_document",
    "extract_page_text",
    "extract_page_images",
    "build_raw_text",
    "font_traits",
]

Matrix = tuple[float, float, float, float, float, float]

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
_PYPDF_DECODED_FILTERS = {"JPXDecode", "JBIG2Decode", "CCITTFaxDecode"}
_MAX_FORM_DEPTH = 8
# TJ adjustments (thousandths of an em) at or below this read as a word break.
_TJ_SPACE_THRESHOLD = -250.0
# Runs on one baseline join when the gap between them is under this many ems.
_RUN_JOIN_GAP = 0.8
_RUN_SPACE_GAP = 0.15


# ----------------------------------------------------------------------
# Document level
# ----------------------------------------------------------------------
def _categorise(exc: BaseException) -> ParseErrorCategory:
    if isinstance(exc, FileNotDecryptedError):
        return ParseErrorCategory.ENCRYPTED
    if isinstance(exc, (PdfReadError, ValueError, KeyError, TypeError, IndexError)):
        return ParseErrorCategory.CORRUPT
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ParseErrorCategory.NETWORK
    return ParseErrorCategory.RUNTIME


def open_reader(data: bytes) -> PdfReader:
    """Open *data* with pypdf, decrypting empty-password documents."""

    try:
        reader = PdfReader(io.BytesIO(data))
        if reader.is_encrypted:
            try:
                result = reader.decrypt("")
            except DependencyError as exc:
                raise ParseError(ParseErrorCategory.RUNTIME, str(exc)) from exc
            if result == PasswordType.NOT_DECRYPTED:
                raise ParseError(ParseErrorCategory.ENCRYPTED)
        page_count = len(reader.pages)
    except ParseError:
        raise
    except Exception as exc:
        category = _categorise(exc)
        LOGGER.error("Unable to open PDF (%s): %s", category.value, exc)
        raise ParseError(category, str(exc) or None) from exc
    LOGGER.debug("Opened PDF with %d pages", page_count)
    return reader


def parse_document(data: bytes, *, max_size: int = MAX_FILE_SIZE) -> ParsedContent:
    """Extract a :class:`ParsedContent` model from PDF *data*.

    Input validation and document opening failures are fatal. Problems with a
    single page or asset are logged, recorded in ``ParsedContent.warnings`` and
    skipped.
    """

    validate_source_bytes(data, max_size)
    with time_block(LOGGER, "PDF parsing"):
        reader = open_reader(data)
        metadata = extract_metadata(reader)
        warnings: list[str] = []
        pages: list[PageContent] = []
        for page_number in range(1, len(reader.pages) + 1):
            try:
                page = reader.pages[page_number - 1]
            except Exception as exc:
                LOGGER.warning("Unable to load page %d: %s", page_number, exc)
                warnings.append(f"Page {page_number} could not be read and was left empty: {exc}")
                pages.append(PageContent(page_number=page_number))
                continue
            pages.append(_parse_page(page, page_number, reader, warnings))

    full_text = "\n\n".join(page.raw_text for page in pages).strip()
    return ParsedContent(pages=pages, metadata=metadata, full_text=full_text, warnings=warnings)


def _parse_page(
    page: DictionaryObject,
    page_number: int,
    reader: PdfReader,
    warnings: list[str],
) -> PageContent:
    try:
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
    except Exception:
        width = height = 0.0

    try:
        fragments = extract_page_text(page, reader)
    except Exception as exc:
        LOGGER.warning("Text extraction failed on page %d: %s", page_number, exc)
        warnings.append(f"Text could not be extracted from page {page_number}: {exc}")
        fragments = []

    try:
        images = extract_page_images(page, reader, page_number, warnings)
    except Exception as exc:
        LOGGER.warning("Image extraction failed on page %d: %s", page_number, exc)
        warnings.append(f"Images could not be extracted from page {page_number}: {exc}")
        images = []

    return PageContent(
        page_number=page_number,
        width=width,
        height=height,
        text_items=fragments,
        raw_text=build_raw_text(fragments),
        images=images,
        tables=detect_tables(fragments, page_number),
    )


# ----------------------------------------------------------------------
# Text
# ----------------------------------------------------------------------
def font_traits(font_name: str | None) -> tuple[bool, bool]:
    """Infer ``(bold, italic)`` from a font name."""

    if not font_name:
        return False, False
    lowered = font_name.lower()
    bold = any(marker in lowered for marker in BOLD_MARKERS)
    italic = any(marker in lowered for marker in ITALIC_MARKERS)
    return bold, italic


@dataclass(slots=True)
class _TextState:
    font: FontInfo = field(default_factory=FontInfo)
    size: float = 0.0
    char_spacing: float = 0.0
    word_spacing: float = 0.0
    horizontal_scale: float = 100.0
    leading: float = 0.0
    tm: Matrix = IDENTITY
    lm: Matrix = IDENTITY


class _ContentWalker:
    """Walk a content stream, recording shown text and painted images.

    Graphics state (``q``/``Q``/``cm``) and text state are tracked per
    operator, so every ``Tj``/``TJ`` yields its own positioned fragment even
    when a whole table is written inside one ``BT`` block. Form XObjects are
    walked recursively with their own resources and matrix.
    """

    def __init__(self, reader: PdfReader | None) -> None:
        self.reader = reader
        self.fragments: list[TextFragment] = []
        self.placements: list[tuple[str, StreamObject, Matrix]] = []
        self._form_chain: list[int] = []

    def walk(
        self,
        contents: object,
        resources: object | None,
        ctm: Matrix = IDENTITY,
        depth: int = 0,
    ) -> None:
        content = contents if isinstance(contents, ContentStream) else ContentStream(contents, self.reader)
        fonts = font_resources(resources)
        xobjects = _xobject_resources(resources)
        ctm_stack: list[Matrix] = [ctm]
        saved: list[_TextState] = []
        state = _TextState()

        for operands, operator in content.operations:
            try:
                state = self._apply(
                    operator, operands, state, saved, ctm_stack, fonts, xobjects, resources, depth
                )
            except (ValueError, TypeError, IndexError) as exc:
                LOGGER.debug("Ignoring malformed %r operator: %s", operator, exc)

    def _apply(
        self,
        operator: bytes,
        operands: list,
        state: _TextState,
        saved: list[_TextState],
        ctm_stack: list[Matrix],
        fonts: dict[str, FontInfo],
        xobjects: dict[str, StreamObject],
        resources: object | None,
        depth: int,
    ) -> _TextState:
        if operator == b"q":
            ctm_stack.append(ctm_stack[-1])
            saved.append(replace(state))
        elif operator == b"Q":
            if len(ctm_stack) > 1:
                ctm_stack.pop()
            if saved:
                state = saved.pop()
        elif operator == b"cm":
            ctm_stack[-1] = _matrix_multiply(ctm_stack[-1], _as_matrix(operands))
        elif operator == b"BT":
            state.tm = state.lm = IDENTITY
        elif operator == b"Tf":
            state.font = fonts.get(_clean_name(operands[0])) or FontInfo()
            state.size = float(operands[1])
        elif operator == b"Tc":
            state.char_spacing = float(operands[0])
        elif operator == b"Tw":
            state.word_spacing = float(operands[0])
        elif operator == b"Tz":
            state.horizontal_scale = float(operands[0])
        elif operator == b"TL":
            state.leading = float(operands[0])
        elif operator in (b"Td", b"TD"):
            tx, ty = float(operands[0]), float(operands[1])
            if operator == b"TD":
                state.leading = -ty
            state.lm = _matrix_multiply(state.lm, (1.0, 0.0, 0.0, 1.0, tx, ty))
            state.tm = state.lm
        elif operator == b"Tm":
            state.tm = state.lm = _as_matrix(operands)
        elif operator == b"T*":
            _next_line(state)
        elif operator == b"Tj":
            self._show(operands[:1], state, ctm_stack[-1])
        elif operator == b"TJ":
            self._show(operands[0], state, ctm_stack[-1])
        elif operator == b"'":
            _next_line(state)
            self._show(operands[:1], state, ctm_stack[-1])
        elif operator == b'"':
            state.word_spacing = float(operands[0])
            state.char_spacing = float(operands[1])
            _next_line(state)
            self._show(operands[2:3], state, ctm_stack[-1])
        elif operator == b"Do":
            self._paint(_clean_name(operands[0]), xobjects, resources, ctm_stack[-1], depth)
        return state

    def _show(self, items: Sequence[object], state: _TextState, ctm: Matrix) -> None:
        font = state.font
        scale = state.horizontal_scale / 100.0
        pieces: list[str] = []
        advance = 0.0
        for item in items:
            if isinstance(item, (int, float)):
                adjustment = float(item)
                advance -= adjustment / 1000.0 * state.size * scale
                if adjustment <= _TJ_SPACE_THRESHOLD:
                    pieces.append(" ")
                continue
            raw = _raw_bytes(item)
            pieces.append(font.decode(raw))
            for code in font.codes(raw):
                glyph = font.glyph_width(code) * state.size + state.char_spacing
                if font.code_length == 1 and code == 32:
                    glyph += state.word_spacing
                advance += glyph * scale

        combined = _matrix_multiply(ctm, state.tm)
        state.tm = _matrix_multiply(state.tm, (1.0, 0.0, 0.0, 1.0, advance, 0.0))

        text = normalise_whitespace(normalise_text_content("".join(pieces)))
        if not text:
            return
        x, y = _matrix_apply(combined, 0.0, 0.0)
        factor = math.hypot(combined[0], combined[1]) or 1.0
        size = state.size * factor
        bold, italic = font_traits(font.name)
        self.fragments.append(
            TextFragment(
                text=text,
                x=float(x),
                y=float(y),
                width=abs(advance) * factor,
                height=size,
                font_name=font.name,
                font_size=size,
                bold=bold,
                italic=italic,
                direction="rtl" if is_rtl_text(text) else "ltr",
            )
        )

    def _paint(
        self,
        name: str,
        xobjects: dict[str, StreamObject],
        resources: object | None,
        ctm: Matrix,
        depth: int,
    ) -> None:
        stream = xobjects.get(name)
        if stream is None:
            return
        if _is_image_xobject(stream):
            self.placements.append((name, stream, ctm))
            return
        if stream.get(NameObject("/Subtype")) != "/Form":
            return
        marker = id(stream)
        if depth >= _MAX_FORM_DEPTH or marker in self._form_chain:
            LOGGER.debug("Not descending into form %s at depth %d", name, depth)
            return
        matrix = _resolve(stream.get(NameObject("/Matrix")))
        if not isinstance(matrix, ArrayObject) or len(matrix) != 6:
            matrix = IDENTITY
        form_resources = _resolve(stream.get(NameObject("/Resources")))
        if not isinstance(form_resources, DictionaryObject):
            form_resources = resources
        self._form_chain.append(marker)
        try:
            self.walk(stream, form_resources, _matrix_multiply(ctm, _as_matrix(matrix)), depth + 1)
        finally:
            self._form_chain.pop()


def _next_line(state: _TextState) -> None:
    leading = state.leading or state.size * 1.2
    state.lm = _matrix_multiply(state.lm, (1.0, 0.0, 0.0, 1.0, 0.0, -leading))
    state.tm = state.lm


def _raw_bytes(operand: object) -> bytes:
    if isinstance(operand, bytes):
        return bytes(operand)
    if hasattr(operand, "get_original_bytes"):
        return operand.get_original_bytes()
    return str(operand).encode("latin-1", "replace")


def _merge_runs(fragments: Sequence[TextFragment]) -> list[TextFragment]:
    """Join consecutive runs that continue one another on the same baseline."""

    merged: list[TextFragment] = []
    for fragment in fragments:
        previous = merged[-1] if merged else None
        if previous is None or not _continues(previous, fragment):
            merged.append(fragment)
            continue
        gap = fragment.x - (previous.x + previous.width)
        joiner = " " if gap > previous.font_size * _RUN_SPACE_GAP else ""
        merged[-1] = replace(
            previous,
            text=f"{previous.text}{joiner}{fragment.text}",
            width=max(previous.x + previous.width, fragment.x + fragment.width) - previous.x,
        )
    return merged


def _continues(previous: TextFragment, fragment: TextFragment) -> bool:
    if previous.direction != "ltr" or fragment.direction != "ltr":
        return False
    if previous.font_name != fragment.font_name or abs(previous.font_size - fragment.font_size) > 0.01:
        return False
    size = previous.font_size or 1.0
    if abs(previous.y - fragment.y) > size * 0.2:
        return False
    gap = fragment.x - (previous.x + previous.width)
    return -size * 0.5 <= gap <= size * _RUN_JOIN_GAP


def extract_page_text(page, reader: PdfReader | None = None) -> list[TextFragment]:
    """Return positioned :class:`TextFragment` objects in content-stream order.

    One fragment is produced per text-showing operator, after which runs that
    simply continue the previous one on the same line are joined back up.
    """

    walker = _walk_page(page, reader)
    return _merge_runs(walker.fragments) if walker is not None else []


def _walk_page(page, reader: PdfReader | None) -> _ContentWalker | None:
    contents = page.get_contents()
    if contents is None:
        return None
    walker = _ContentWalker(reader if reader is not None else getattr(page, "pdf", None))
    walker.walk(contents, _resolve(page.get(NameObject("/Resources"))))
    return walker


def build_raw_text(fragments: Sequence[TextFragment]) -> str:
    """Join fragments top-to-bottom then left-to-right into display text."""

    ordered = sorted(fragments, key=lambda item: (-round(item.y), item.x))
    return normalise_whitespace(" ".join(item.text for item in ordered))


# ----------------------------------------------------------------------
# Images
# ----------------------------------------------------------------------
def extract_page_images(
    page: DictionaryObject,
    reader: PdfReader,
    page_number: int,
    warnings: list[str] | None = None,
) -> list[ImageAsset]:
    """Return the raster images painted on *page*, positioned via the CTM.

    Images painted from inside Form XObjects are included, placed with the
    form's matrix applied.
    """

    walker = _walk_page(page, reader)
    if walker is None:
        return []

    assets: list[ImageAsset] = []
    for index, (name, stream, matrix) in enumerate(walker.placements):
        try:
            asset = _resolve_asset(page, reader, name, stream, matrix, page_number, index)
        except Exception as exc:
            LOGGER.warning("Skipping image %s on page %d: %s", name, page_number, exc)
            if warnings is not None:
                warnings.append(f"Skipped image {name} on page {page_number}: {exc}")
            continue
        if asset is not None:
            assets.append(asset)
    return assets


def _xobject_resources(resources: object | None) -> dict[str, StreamObject]:
    resources = _resolve(resources)
    if not isinstance(resources, DictionaryObject):
        return {}
    xobjects = _resolve(resources.get(NameObject("/XObject")))
    if not isinstance(xobjects, DictionaryObject):
        return {}
    streams: dict[str, StreamObject] = {}
    for name_obj, raw in xobjects.items():
        stream = _resolve(raw)
        if isinstance(stream, StreamObject):
            streams[_clean_name(name_obj)] = stream
    return streams


def _resolve_asset(
    page: DictionaryObject,
    reader: PdfReader,
    name: str,
    stream: StreamObject,
    matrix: Matrix,
    page_number: int,
    index: int,
) -> ImageAsset | None:
    width = int(_resolve(stream.get(NameObject("/Width"))) or 0)
    height = int(_resolve(stream.get(NameObject("/Height"))) or 0)
    if width <= 0 or height <= 0:
        LOGGER.debug("Discarding image %s with dimensions %dx%d", name, width, height)
        return None

    source_format, data, width, height = _stream_payload(page, reader, name, stream, width, height)
    if width <= 0 or height <= 0:
        return None

    corners = [_matrix_apply(matrix, x, y) for x, y in ((0, 0), (1, 0), (0, 1), (1, 1))]
    xs = [point[0] for point in corners]
    ys = [point[1] for point in corners]
    left, bottom = min(xs), min(ys)
    return ImageAsset(
        id=f"p{page_number}-{name}-{index}",
        page_number=page_number,
        x=left,
        y=bottom,
        width=width,
        height=height,
        format=source_format,
        data=data,
        display_width=max(xs) - left,
        display_height=max(ys) - bottom,
    )


def _stream_payload(
    page: DictionaryObject,
    reader: PdfReader,
    name: str,
    stream: StreamObject,
    width: int,
    height: int,
) -> tuple[str, bytes, int, int]:
    filters = _normalise_filters(stream.get(NameObject("/Filter")))
    if "DCTDecode" in filters:
        raw = getattr(stream, "_data", None)
        data = bytes(raw) if raw is not None else stream.get_data()
        return "JPEG", data, width, height

    if not filters & _PYPDF_DECODED_FILTERS:
        raw = stream.get_data()
        color_space = _resolve(stream.get(NameObject("/ColorSpace")))
        bits = int(stream.get(NameObject("/BitsPerComponent"), 8) or 8)
        decoded = _normalise_image_bytes(raw, color_space, bits)
        if decoded is not None:
            mode, pixels = decoded
            alpha = _extract_alpha(stream)
            if alpha is not None and len(alpha) == width * height:
                return "RGBA", _merge_alpha(pixels, alpha, mode), width, height
            return mode, pixels, width, height

    return _pypdf_fallback(page, name)


def _pypdf_fallback(page, name: str) -> tuple[str, bytes, int, int]:
    """Decode through pypdf's image support for encodings handled there."""

    image = page.images[f"/{name}"].image
    if image is None:
        raise ValueError(f"pypdf could not decode image {name}")
    if image.mode not in {"RGB", "RGBA", "L"}:
        image = image.convert("RGBA" if "A" in image.mode or image.mode == "P" else "RGB")
    width, height = image.size
    return image.mode, image.tobytes(), width, height


def _merge_alpha(pixels: bytes, alpha: bytes, mode: str) -> bytes:
    rgba = bytearray()
    if mode == "L":
        for value, opacity in zip(pixels, alpha):
            rgba.extend((value, value, value, opacity))
        return bytes(rgba)
    for index, opacity in enumerate(alpha):
        rgba.extend(pixels[index * 3 : index * 3 + 3])
        rgba.append(opacity)
    return bytes(rgba)


def _is_image_xobject(stream: StreamObject) -> bool:
    subtype = stream.get(NameObject("/Subtype"))
    return isinstance(subtype, NameObject) and subtype == NameObject("/Image")


def _normalise_filters(filter_obj: object | None) -> set[str]:
    filter_obj = _resolve(filter_obj)
    if filter_obj is None:
        return set()
    if isinstance(filter_obj, ArrayObject):
        return {_clean_name(item) for item in filter_obj}
    return {_clean_name(filter_obj)}


def _extract_alpha(stream: StreamObject) -> bytes | None:
    for key in ("/SMask", "/Mask"):
        mask = _resolve(stream.get(NameObject(key)))
        if isinstance(mask, (EncodedStreamObject, StreamObject)):
            return _normalise_alpha(mask.get_data(), mask)
    return None


def _normalise_alpha(alpha: bytes, stream: StreamObject) -> bytes | None:
    bits = int(stream.get(NameObject("/BitsPerComponent"), 8) or 8)
    if bits == 8:
        return alpha
    if bits == 1:
        width = int(stream.get(NameObject("/Width"), 1))
        height = int(stream.get(NameObject("/Height"), 1))
        row_bytes = (width + 7) // 8
        expanded = bytearray()
        for row in range(height):
            line = alpha[row * row_bytes : (row + 1) * row_bytes]
            for column in range(width):
                byte = line[column // 8] if column // 8 < len(line) else 0
                expanded.append(255 if (byte >> (7 - column % 8)) & 1 else 0)
        return bytes(expanded)
    return None


def _normalise_image_bytes(raw: bytes, color_space: object | None, bits: int) -> tuple[str, bytes] | None:
    if bits != 8:
        return None
    if isinstance(color_space, NameObject):
        if color_space == "/DeviceRGB":
            return "RGB", raw
        if color_space == "/DeviceGray":
            return "L", raw
        if color_space == "/DeviceCMYK":
            return "RGB", bytes(_convert_cmyk_to_rgb(raw))
    if isinstance(color_space, ArrayObject) and color_space:
        kind = color_space[0]
        if kind == "/CalRGB":
            return "RGB", raw
        if kind == "/CalGray":
            return "L", raw
        if kind == "/ICCBased" and len(color_space) > 1:
            profile = _resolve(color_space[1])
            if isinstance(profile, StreamObject):
                components = int(profile.get(NameObject("/N"), 3) or 3)
                if components == 3:
                    return "RGB", raw
                if components == 1:
                    return "L", raw
        if kind == "/Indexed" and len(color_space) >= 4:
            palette = _extract_palette(_resolve(color_space[3]), _resolve(color_space[1]), int(color_space[2]))
            if palette is None:
                return None
            return "RGB", bytes(_apply_palette(raw, palette))
    return None


def _convert_cmyk_to_rgb(raw: bytes) -> Iterator[int]:
    for index in range(0, len(raw) - 3, 4):
        c, m, y, k = raw[index : index + 4]
        yield 255 - min(255, c + k)
        yield 255 - min(255, m + k)
        yield 255 - min(255, y + k)


def _extract_palette(lookup: object | None, base: object, hival: int) -> list[tuple[int, int, int]] | None:
    if isinstance(base, ArrayObject):
        base = base[0]
    if base == "/DeviceRGB":
        step = 3
    elif base == "/DeviceGray":
        step = 1
    else:
        return None
    if isinstance(lookup, StreamObject):
        data = lookup.get_data()
    elif isinstance(lookup, (bytes, bytearray)):
        data = bytes(lookup)
    else:
        data = bytes(str(lookup), "latin1") if lookup is not None else b""
    palette: list[tuple[int, int, int]] = []
    for index in range(0, min(len(data), (hival + 1) * step), step):
        if step == 3:
            palette.append((data[index], data[index + 1], data[index + 2]))
        else:
            palette.append((data[index],) * 3)
    return palette or None


def _apply_palette(raw: bytes, palette: Sequence[tuple[int, int, int]]) -> Iterator[int]:
    limit = len(palette)
    for index in raw:
        yield from palette[index if index < limit else -1]


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _clean_name(name: object) -> str:
    raw = str(name)
    return raw[1:] if raw.startswith("/") else raw


def _resolve(obj: object | None) -> object | None:
    if isinstance(obj, IndirectObject):
        try:
            return obj.get_object()
        except Exception:
            return None
    return obj


def _as_matrix(values: Sequence[object]) -> Matrix:
    a, b, c, d, e, f = (float(value) for value in values)
    return a, b, c, d, e, f


def _matrix_multiply(lhs: Matrix, rhs: Matrix) -> Matrix:
    a1, b1, c1, d1, e1, f1 = lhs
    a2, b2, c2, d2, e2, f2 = rhs
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def _matrix_apply(matrix: Matrix, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, e, f = matrix
    return a * x + c * y + e, b * x + d * y + f
