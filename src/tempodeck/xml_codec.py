"""Streaming parser and serializer for the profiles markup document."""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from xml.sax.saxutils import escape

from . import PRODUCT_NAME
from .models import Accent, Meter, Profile, ProfileId, slot_attribute

logger = logging.getLogger(__name__)

ROOT_ELEMENT = f"{PRODUCT_NAME}-profiles"
READ_CHUNK_SIZE = 4096

# Element names that open a structural block. Text of leaf elements is routed
# by the innermost open block.
BLOCK_ELEMENTS = frozenset({"header", "content", "trainer-section", "meter-section", "meter"})

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_INVALID_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")
_ENTITIES = {'"': "&quot;", "'": "&apos;", "\r": "&#13;"}
# Attribute-value normalization turns literal tabs and newlines into spaces.
_ATTRIBUTE_ENTITIES = {**_ENTITIES, "\n": "&#10;", "\t": "&#9;"}


class ConversionError(ValueError):
    """Text of a single field does not parse as the field's type."""


class ParseFailure(ValueError):
    """The document is not well-formed markup."""


def parse_int(text: str | None) -> int:
    """Parse decimal integer text with an optional sign."""
    stripped = (text or "").strip()
    if not _INTEGER_RE.match(stripped):
        raise ConversionError(f"not an integer: {text!r}")
    try:
        return int(stripped)
    except ValueError as exc:
        # Digit strings past the interpreter's conversion limit.
        raise ConversionError(f"integer out of range: {stripped[:20]}...") from exc


def parse_bool(text: str | None) -> bool:
    """Parse `true`/`false` (any case) or an integer, nonzero meaning true."""
    lowered = (text or "").strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return parse_int(lowered) != 0
    except ConversionError:
        raise ConversionError(f"not a boolean: {text!r}") from None


def format_bool(value: bool) -> str:
    """Serialize a boolean as its integer text."""
    return str(int(bool(value)))


def _text(text: str | None) -> str:
    return text or ""


def _stripped(text: str | None) -> str:
    return (text or "").strip()


Converter = Callable[[str | None], object]

# (block, element) -> (profile half, dataclass field, converter)
_FIELD_ROUTES: dict[tuple[str, str], tuple[str, str, Converter]] = {
    ("header", "title"): ("header", "title", _text),
    ("header", "description"): ("header", "description", _text),
    ("content", "tempo"): ("content", "tempo", parse_int),
    ("meter-section", "enabled"): ("content", "meter_enabled", parse_bool),
    ("meter-section", "meter-select"): ("content", "meter_select", _stripped),
    ("trainer-section", "enabled"): ("content", "trainer_enabled", parse_bool),
    ("trainer-section", "start"): ("content", "trainer_start", parse_int),
    ("trainer-section", "target"): ("content", "trainer_target", parse_int),
    ("trainer-section", "accel"): ("content", "trainer_accel", parse_int),
}


@dataclass
class ParsedProfiles:
    """Records recovered from one document, keyed by id, plus their order."""

    profiles: dict[ProfileId, Profile] = field(default_factory=dict)
    order: list[ProfileId] = field(default_factory=list)
    skipped_fields: int = 0


@dataclass
class _ParseContext:
    """Mutable state threaded through the parse event handlers.

    The record being filled is addressed by `profile_id` and the meter being
    accumulated by `meter_slot`; both are keys, never references.
    """

    result: ParsedProfiles = field(default_factory=ParsedProfiles)
    blocks: list[str] = field(default_factory=list)
    profile_id: ProfileId | None = None
    meter_slot: str | None = None
    meter_beats: int = 1
    meter_division: int = 0
    meter_accents: list[Accent] = field(default_factory=list)

    def skip(self, element: str, error: Exception) -> None:
        self.result.skipped_fields += 1
        logger.warning("Ignoring <%s> of profile '%s': %s", element, self.profile_id, error)


def _local_name(tag: str) -> str:
    """Lowercased element name with any namespace prefix removed."""
    return tag.rsplit("}", 1)[-1].lower()


def _attribute(element: ET.Element, name: str) -> str | None:
    for key, value in element.attrib.items():
        if _local_name(key) == name:
            return value
    return None


def _on_start(ctx: _ParseContext, element: ET.Element) -> None:
    name = _local_name(element.tag)
    if name == "profile":
        profile_id = _attribute(element, "id")
        ctx.profile_id = profile_id
        if profile_id is not None and profile_id not in ctx.result.profiles:
            ctx.result.profiles[profile_id] = Profile()
            ctx.result.order.append(profile_id)
    elif name == "meter":
        ctx.blocks.append(name)
        slot = (_attribute(element, "id") or "").strip().lower()
        try:
            slot_attribute(slot)
        except KeyError:
            slot = ""
        ctx.meter_slot = slot if ctx.profile_id is not None and slot else None
        ctx.meter_beats = 1
        ctx.meter_division = 0
        ctx.meter_accents = []
    elif name in BLOCK_ELEMENTS:
        ctx.blocks.append(name)
    elif name == "accent" and ctx.meter_slot is not None:
        try:
            level = parse_int(_attribute(element, "level"))
        except ConversionError as exc:
            ctx.skip(name, exc)
            level = Accent.OFF
        ctx.meter_accents.append(Accent.clamp(level))


def _on_end(ctx: _ParseContext, element: ET.Element) -> None:
    name = _local_name(element.tag)
    if name == "profile":
        ctx.profile_id = None
    elif name == "meter":
        if ctx.meter_slot is not None and ctx.profile_id is not None:
            meter = Meter(beats=ctx.meter_beats, division=ctx.meter_division, accents=tuple(ctx.meter_accents))
            profile = ctx.result.profiles[ctx.profile_id]
            content = replace(profile.content, **{slot_attribute(ctx.meter_slot): meter})
            ctx.result.profiles[ctx.profile_id] = replace(profile, content=content)
        ctx.meter_slot = None
        _pop_block(ctx, name)
    elif name in BLOCK_ELEMENTS:
        _pop_block(ctx, name)
    elif ctx.profile_id is not None and ctx.blocks:
        _on_leaf(ctx, ctx.profile_id, ctx.blocks[-1], name, element.text)


def _pop_block(ctx: _ParseContext, name: str) -> None:
    if ctx.blocks and ctx.blocks[-1] == name:
        ctx.blocks.pop()


def _on_leaf(ctx: _ParseContext, profile_id: ProfileId, block: str, name: str, text: str | None) -> None:
    if block == "meter":
        if ctx.meter_slot is None or name not in ("beats", "division"):
            return
        try:
            number = parse_int(text)
        except ConversionError as exc:
            ctx.skip(name, exc)
            return
        if name == "beats":
            ctx.meter_beats = number
        else:
            ctx.meter_division = number
        return

    route = _FIELD_ROUTES.get((block, name))
    if route is None:
        return
    half, attr, convert = route
    try:
        value = convert(text)
    except ConversionError as exc:
        ctx.skip(name, exc)
        return
    profile = ctx.result.profiles[profile_id]
    part = replace(getattr(profile, half), **{attr: value})
    ctx.result.profiles[profile_id] = replace(profile, **{half: part})


def parse_profiles(chunks: Iterable[bytes]) -> ParsedProfiles:
    """Parse a profiles document delivered as a stream of byte chunks.

    An empty stream yields an empty collection. Malformed markup raises
    `ParseFailure`; a field whose text cannot be converted is skipped and the
    record keeps its previous value for that field.
    """
    ctx = _ParseContext()
    parser = ET.XMLPullParser(events=("start", "end"))
    received = False
    try:
        for chunk in chunks:
            if not chunk:
                continue
            received = True
            parser.feed(chunk)
            _dispatch(ctx, parser)
        if not received:
            return ctx.result
        parser.close()
        _dispatch(ctx, parser)
    except ET.ParseError as exc:
        raise ParseFailure(str(exc)) from exc
    return ctx.result


def _dispatch(ctx: _ParseContext, parser: ET.XMLPullParser) -> None:
    for event, element in parser.read_events():
        if event == "start":
            _on_start(ctx, element)
        else:
            _on_end(ctx, element)
            element.clear()


def _escape(text: str) -> str:
    return escape(_INVALID_XML_CHARS.sub("", text), _ENTITIES)


def _escape_attribute(text: str) -> str:
    return escape(_INVALID_XML_CHARS.sub("", text), _ATTRIBUTE_ENTITIES)


def _write_meter(lines: list[str], slot: str, meter: Meter) -> None:
    lines.append(f'          <meter id="{_escape_attribute(slot)}">\n')
    lines.append(f"            <beats>{meter.beats}</beats>\n")
    lines.append(f"            <division>{meter.division}</division>\n")
    lines.append("            <accent-pattern>\n")
    for accent in meter.accents:
        lines.append(f'              <accent level="{int(accent)}"/>\n')
    lines.append("            </accent-pattern>\n")
    lines.append("          </meter>\n")


def _write_profile(lines: list[str], profile_id: ProfileId, profile: Profile) -> None:
    header = profile.header
    content = profile.content
    lines.append(f'  <profile id="{_escape_attribute(profile_id)}">\n')
    lines.append("    <header>\n")
    lines.append(f"      <title>{_escape(header.title)}</title>\n")
    lines.append(f"      <description>{_escape(header.description)}</description>\n")
    lines.append("    </header>\n")
    lines.append("    <content>\n")
    lines.append(f"      <tempo>{int(content.tempo)}</tempo>\n")
    lines.append("      <meter-section>\n")
    lines.append(f"        <enabled>{format_bool(content.meter_enabled)}</enabled>\n")
    lines.append(f"        <meter-select>{_escape(content.meter_select)}</meter-select>\n")
    lines.append("        <meter-list>\n")
    for slot, meter in content.meters():
        _write_meter(lines, slot, meter)
    lines.append("        </meter-list>\n")
    lines.append("      </meter-section>\n")
    lines.append("      <trainer-section>\n")
    lines.append(f"        <enabled>{format_bool(content.trainer_enabled)}</enabled>\n")
    lines.append(f"        <start>{int(content.trainer_start)}</start>\n")
    lines.append(f"        <target>{int(content.trainer_target)}</target>\n")
    lines.append(f"        <accel>{int(content.trainer_accel)}</accel>\n")
    lines.append("      </trainer-section>\n")
    lines.append("    </content>\n")
    lines.append("  </profile>\n")


def serialize_profiles(profiles: Mapping[ProfileId, Profile], order: Sequence[ProfileId], version: str) -> str:
    """Render profiles in `order` as a complete markup document."""
    lines = ['<?xml version="1.0" encoding="UTF-8"?>\n']
    lines.append(f'<{ROOT_ELEMENT} version="{_escape_attribute(version)}">\n')
    for profile_id in order:
        _write_profile(lines, profile_id, profiles[profile_id])
    lines.append(f"</{ROOT_ELEMENT}>\n")
    return "".join(lines)
