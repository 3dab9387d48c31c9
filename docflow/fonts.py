"""Font decoding and glyph metrics for content-stream text extraction."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping

from pypdf import _cmap
from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject, NameObject

LOGGER = logging.getLogger(__name__)

__all__ = [
    "FontInfo",
    "apply_translation_map",
    "build_font_info",
    "font_resources",
]

# Glyph advance, in em, assumed when a font carries no usable /Widths.
DEFAULT_GLYPH_WIDTH = 0.5

_SUBSET_PREFIX = re.compile(r"^[A-Z]{6}\+")


def _resolve(obj: object | None) -> object | None:
    if isinstance(obj, IndirectObject):
        try:
            return obj.get_object()
        except Exception:
            return None
    return obj


def _glyph_name_to_unicode(name: str) -> str | None:
    if not name:
        return None
    if not name.startswith("/"):
        name = f"/{name}"
    return _cmap.adobe_glyphs.get(name)


def _build_translation(font_dict: DictionaryObject) -> tuple[dict[str, str], int, str | None]:
    """Return ``(mapping, max_key_length, codec)`` for decoding shown strings."""

    try:
        encoding, cmap = _cmap.get_encoding(font_dict)
    except Exception as exc:
        LOGGER.debug("Unable to read encoding of font %s: %s", font_dict.get("/BaseFont"), exc)
        encoding, cmap = None, {}

    translation: dict[str, str] = {}
    if isinstance(cmap, dict):
        for key, value in cmap.items():
            if not isinstance(key, str):
                continue
            if isinstance(value, bytes):
                try:
                    translation[key] = value.decode("utf-16-be", "surrogatepass")
                except UnicodeDecodeError:
                    translation[key] = value.decode("latin-1", "ignore")
            else:
                translation[key] = str(value)
    if not translation and isinstance(encoding, dict):
        for raw_code, glyph_name in encoding.items():
            if not isinstance(raw_code, int) or not isinstance(glyph_name, str):
                continue
            try:
                key = chr(raw_code)
            except ValueError:
                continue
            mapped = _glyph_name_to_unicode(glyph_name) or glyph_name.lstrip("/")
            if mapped:
                translation[key] = mapped

    codec = encoding if isinstance(encoding, str) and not translation else None
    max_key_length = max((len(key) for key in translation), default=1)
    return translation, max_key_length, codec


def apply_translation_map(text: str, mapping: Mapping[str, str], max_key_length: int) -> str:
    """Greedily replace the longest matching code sequences in *text*."""

    if not mapping:
        return text
    if max_key_length <= 1:
        return "".join(mapping.get(char, char) for char in text)
    result: list[str] = []
    index = 0
    length = len(text)
    while index < length:
        for window in range(min(max_key_length, length - index), 0, -1):
            mapped = mapping.get(text[index : index + window])
            if mapped is not None:
                result.append(mapped)
                index += window
                break
        else:
            result.append(text[index])
            index += 1
    return "".join(result)


@dataclass(slots=True)
class FontInfo:
    """What the text walker needs from a font: its name, decoder and advances."""

    name: str | None = None
    mapping: dict[str, str] = field(default_factory=dict)
    max_key_length: int = 1
    codec: str | None = None
    code_length: int = 1
    first_char: int = 0
    widths: list[float] = field(default_factory=list)

    def decode(self, raw: bytes) -> str:
        if self.mapping:
            return apply_translation_map(raw.decode("latin-1"), self.mapping, self.max_key_length)
        if self.codec:
            try:
                return raw.decode(self.codec)
            except (LookupError, UnicodeDecodeError):
                pass
        return raw.decode("latin-1")

    def codes(self, raw: bytes) -> list[int]:
        if self.code_length == 2:
            return [int.from_bytes(raw[index : index + 2], "big") for index in range(0, len(raw) - 1, 2)]
        return list(raw)

    def glyph_width(self, code: int) -> float:
        """Advance of *code* in em (text space units per point of font size)."""

        index = code - self.first_char
        if 0 <= index < len(self.widths) and self.widths[index] > 0:
            return self.widths[index] / 1000.0
        return DEFAULT_GLYPH_WIDTH


def _base_font_name(font_dict: DictionaryObject) -> str | None:
    base_font = font_dict.get(NameObject("/BaseFont"))
    if base_font is None:
        return None
    name = str(base_font)
    name = name[1:] if name.startswith("/") else name
    return _SUBSET_PREFIX.sub("", name) or None


def _simple_widths(font_dict: DictionaryObject) -> tuple[int, list[float]]:
    widths = _resolve(font_dict.get(NameObject("/Widths")))
    if not isinstance(widths, ArrayObject):
        return 0, []
    try:
        first_char = int(font_dict.get(NameObject("/FirstChar"), 0))
        return first_char, [float(_resolve(value) or 0) for value in widths]
    except (TypeError, ValueError):
        return 0, []


def build_font_info(font_dict: object | None) -> FontInfo:
    """Describe *font_dict*; unreadable fonts fall back to Latin-1 and average widths."""

    font_dict = _resolve(font_dict)
    if not isinstance(font_dict, DictionaryObject):
        return FontInfo()
    mapping, max_key_length, codec = _build_translation(font_dict)
    is_composite = font_dict.get(NameObject("/Subtype")) == "/Type0"
    first_char, widths = (0, []) if is_composite else _simple_widths(font_dict)
    return FontInfo(
        name=_base_font_name(font_dict),
        mapping=mapping,
        max_key_length=max_key_length,
        codec=codec,
        code_length=2 if is_composite else 1,
        first_char=first_char,
        widths=widths,
    )


def font_resources(resources: object | None) -> dict[str, FontInfo]:
    """Map resource names (without ``/``) to :class:`FontInfo` for a resource dict."""

    resources = _resolve(resources)
    if not isinstance(resources, DictionaryObject):
        return {}
    fonts = _resolve(resources.get(NameObject("/Font")))
    if not isinstance(fonts, DictionaryObject):
        return {}
    infos: dict[str, FontInfo] = {}
    for name, font in fonts.items():
        key = str(name)
        infos[key[1:] if key.startswith("/") else key] = build_font_info(font)
    return infos
