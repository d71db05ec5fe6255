"""Die-roll preset files.

Presets are named die-roll specifications saved for reuse. The current file
format (version 2) looks like:

    __DICE__:2
    «__META__» {"Timestamp": 1700000000, "DateTime": "...", "Comment": "..."}
    «PRESET» {"Name": "attack", "Description": "longsword", "DieRollSpec": "d20+7"}
    «PRESET» {
        "Name": "damage",
        "DieRollSpec": "1d8+4"
    }
    «__EOF__»

Each record's JSON may continue over several lines, up to the next line that
starts with «. Version 1 files have a header of "__DICE__:1 [<timestamp> <date>]"
followed by one Tcl list per line holding name, description and spec.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import TextIO

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gmdice.errors import CorruptFileError, UnsupportedVersionError

logger = logging.getLogger(__name__)

MINIMUM_SUPPORTED_VERSION = 1
MAXIMUM_SUPPORTED_VERSION = 2

_RE_HEADER = re.compile(r"^__DICE__:(\d+)\s*(.*)$")
_RE_RECORD = re.compile(r"^«(PRESET|__META__)»\s(.+)$")
_RE_EOF = re.compile(r"^«__EOF__»$")


class DieRollPreset(BaseModel):
    """A named die-roll specification.

    A "|" in the name hides everything up to and including it when clients
    display the name, which lets users force a sort order.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    description: str = Field(default="", alias="Description")
    spec: str = Field(alias="DieRollSpec")


class PresetMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: int = Field(default=0, alias="Timestamp")
    date_time: str = Field(default="", alias="DateTime")
    comment: str = Field(default="", alias="Comment")
    file_version: int = Field(default=0, exclude=True)


def _to_json(model: BaseModel, *, omit_empty: set[str]) -> str:
    data = model.model_dump(by_alias=True)
    for key in omit_empty:
        if not data.get(key):
            data.pop(key, None)
    return json.dumps(data, indent=4, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def save_preset_file(
    output: TextIO,
    presets: list[DieRollPreset],
    meta: PresetMetadata | None = None,
) -> None:
    """Write presets, sorted by name, to an open text stream in the current format.

    A zero timestamp in meta is replaced with the current time.
    """
    meta = meta.model_copy() if meta is not None else PresetMetadata()
    if meta.timestamp == 0:
        now = datetime.now().astimezone()
        meta.timestamp = int(now.timestamp())
        meta.date_time = str(now)

    output.write(f"__DICE__:{MAXIMUM_SUPPORTED_VERSION}\n")
    output.write("«__META__» " + _to_json(meta, omit_empty={"Timestamp", "DateTime", "Comment"}) + "\n")
    for preset in sorted(presets, key=lambda p: p.name):
        output.write("«PRESET» " + _to_json(preset, omit_empty={"Description"}) + "\n")
    output.write("«__EOF__»\n")


def write_preset_file(
    path: str | Path,
    presets: list[DieRollPreset],
    meta: PresetMetadata | None = None,
) -> None:
    with open(path, "w", encoding="utf-8") as f:
        save_preset_file(f, presets, meta)
    logger.info("Wrote %d presets to %s", len(presets), path)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def parse_tcl_list(text: str) -> list[str]:
    """Split a Tcl list string into its elements.

    Elements are separated by whitespace and may be wrapped in braces (which
    nest) or double quotes. A backslash makes the next character literal.

    Raises:
        ValueError: If braces or quotes are unbalanced or text follows a
            closing brace.
    """
    elements: list[str] = []
    current: list[str] = []
    level = 0
    between_elements = True
    end_of_element = False
    braced = False
    quoted = False
    literal_next = False

    for ch in text:
        if literal_next:
            if ch not in '{}\\" #':
                current.append("\\")
            current.append(ch)
            literal_next = False
            continue
        if ch == "\\":
            literal_next = True
            continue
        if not braced and not quoted and ch in " \t\n\v\f\r":
            if between_elements:
                continue
            end_of_element = False
            elements.append("".join(current))
            current = []
            between_elements = True
            continue

        if end_of_element:
            raise ValueError(f"list element in braces ({''.join(current)!r}) followed by {ch!r} instead of space")
        if ch == '"':
            if between_elements:
                between_elements = False
                quoted = True
                continue
            if quoted:
                quoted = False
                end_of_element = True
                continue
        elif ch == "{":
            level += 1
            if between_elements:
                between_elements = False
                braced = True
                continue
        elif ch == "}":
            level -= 1
            if level == 0 and braced:
                end_of_element = True
                braced = False
                continue
            if level < 0:
                raise ValueError(f"too many right braces after {''.join(current)!r}")
        between_elements = False
        current.append(ch)

    if not between_elements:
        elements.append("".join(current))
    if level != 0:
        raise ValueError("unterminated brace at end of string")
    if quoted:
        raise ValueError("unterminated quote at end of string")
    if literal_next:
        raise ValueError("trailing backslash at end of string")
    return elements


def _load_legacy(lines: list[str], meta: PresetMetadata, legacy_meta: str) -> list[DieRollPreset]:
    try:
        fields = parse_tcl_list(legacy_meta)
    except ValueError as exc:
        raise CorruptFileError(f"legacy die-roll preset file has invalid metadata: {exc}") from exc
    if fields:
        if fields[0].isdigit():
            meta.timestamp = int(fields[0])
        if len(fields) > 1:
            meta.date_time = fields[1]

    presets = []
    for line in lines:
        try:
            record = parse_tcl_list(line)
        except ValueError as exc:
            raise CorruptFileError(f"legacy die-roll preset file has invalid record: {exc}") from exc
        if len(record) != 3:
            raise CorruptFileError(f"legacy die-roll preset file has invalid record: field count {len(record)}")
        presets.append(DieRollPreset(name=record[0], description=record[1], spec=record[2]))
    return presets


def _load_record(kind: str, data: str, presets: list[DieRollPreset], meta: PresetMetadata) -> PresetMetadata:
    try:
        if kind == "__META__":
            loaded = PresetMetadata.model_validate_json(data)
            loaded.file_version = meta.file_version
            return loaded
        presets.append(DieRollPreset.model_validate_json(data))
    except ValidationError as exc:
        raise CorruptFileError(f"invalid die-roll preset file: {exc}") from exc
    return meta


def load_preset_file(stream: TextIO) -> tuple[list[DieRollPreset], PresetMetadata]:
    """Read presets from an open text stream.

    Returns:
        (presets, metadata). An empty stream yields no presets.

    Raises:
        UnsupportedVersionError: If the file's format version is not supported.
        CorruptFileError: If the file is malformed or truncated.
    """
    meta = PresetMetadata()
    lines = stream.read().splitlines()
    if not lines:
        return [], meta

    header = _RE_HEADER.match(lines[0])
    if header is None:
        raise CorruptFileError("invalid die-roll preset file format in initial header")
    version = int(header.group(1))
    meta.file_version = version
    if not MINIMUM_SUPPORTED_VERSION <= version <= MAXIMUM_SUPPORTED_VERSION:
        raise UnsupportedVersionError(
            f"cannot read die-roll preset file format version {version} (only versions "
            f"{MINIMUM_SUPPORTED_VERSION}-{MAXIMUM_SUPPORTED_VERSION} are supported)"
        )
    if version < 2:
        return _load_legacy(lines[1:], meta, header.group(2)), meta

    presets: list[DieRollPreset] = []
    pending: tuple[str, list[str]] | None = None
    for line in lines[1:]:
        if pending is not None:
            if not line.startswith("«"):
                pending[1].append(line)
                continue
            meta = _load_record(pending[0], "\n".join(pending[1]), presets, meta)
            pending = None

        if not line.strip():
            continue
        if _RE_EOF.match(line):
            return presets, meta
        record = _RE_RECORD.match(line)
        if record is None:
            raise CorruptFileError(f"invalid die-roll preset file format: unexpected data {line!r}")
        pending = (record.group(1), [record.group(2)])

    raise CorruptFileError("invalid die-roll preset file format: unexpected end of file")


def read_preset_file(path: str | Path) -> tuple[list[DieRollPreset], PresetMetadata]:
    """Read presets from the named file.

    Raises:
        FileNotFoundError: If the file does not exist.
        PresetFileError: If the file cannot be parsed.
    """
    with open(path, encoding="utf-8") as f:
        presets, meta = load_preset_file(f)
    logger.info("Read %d presets from %s (format version %d)", len(presets), path, meta.file_version)
    return presets, meta
