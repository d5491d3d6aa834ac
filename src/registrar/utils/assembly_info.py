"""Managed assembly inspection.

Reads two things from a managed (CLI) image without loading it:

- The runtime version string of the metadata root, e.g. ``v2.0.50727`` or
  ``v4.0.30319``, which decides the runtime and IDE targets an assembly can
  be registered with.
- The assembly's own identity (name, version, culture and public key token)
  from the Assembly table of the ``#~`` stream.

The walk is: DOS header -> PE header -> optional header data directory 14
(the CLI header) -> metadata root -> stream headers -> tables. Only the bytes
needed for that walk are interpreted.
"""

import dataclasses
import hashlib
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from registrar.base.errors import ImageFormatError

CLI_HEADER_DIRECTORY = 14
METADATA_SIGNATURE = 0x424A5342  # "BSJB"

PE32_MAGIC = 0x10B
PE32_PLUS_MAGIC = 0x20B

ASSEMBLY_TABLE = 0x20


@dataclass(frozen=True)
class _Section:
    virtual_address: int
    virtual_size: int
    raw_size: int
    raw_pointer: int

    def contains(self, rva: int) -> bool:
        return self.virtual_address <= rva < self.virtual_address + max(
            self.virtual_size, self.raw_size
        )


def _unpack(fmt: str, data: bytes, offset: int) -> tuple:
    try:
        return struct.unpack_from(fmt, data, offset)
    except struct.error as e:
        raise ImageFormatError(f"truncated image at offset {offset:#x}") from e


def _rva_to_offset(sections: list[_Section], rva: int) -> int:
    for section in sections:
        if section.contains(rva):
            return rva - section.virtual_address + section.raw_pointer
    raise ImageFormatError(f"relative virtual address {rva:#x} is outside every section")


def _metadata_root(data: bytes) -> int:
    """File offset of the metadata root of a managed image."""
    if data[:2] != b"MZ":
        raise ImageFormatError("missing DOS header signature")
    (pe_offset,) = _unpack("<I", data, 0x3C)
    if data[pe_offset : pe_offset + 4] != b"PE\0\0":
        raise ImageFormatError("missing PE header signature")

    coff = pe_offset + 4
    (section_count,) = _unpack("<H", data, coff + 2)
    (optional_size,) = _unpack("<H", data, coff + 16)
    optional = coff + 20

    (magic,) = _unpack("<H", data, optional)
    if magic == PE32_MAGIC:
        count_offset, directories = 92, 96
    elif magic == PE32_PLUS_MAGIC:
        count_offset, directories = 108, 112
    else:
        raise ImageFormatError(f"unknown optional header magic {magic:#x}")

    (directory_count,) = _unpack("<I", data, optional + count_offset)
    if directory_count <= CLI_HEADER_DIRECTORY:
        raise ImageFormatError("image has no CLI header, it is not a managed assembly")
    cli_rva, cli_size = _unpack("<II", data, optional + directories + 8 * CLI_HEADER_DIRECTORY)
    if cli_rva == 0 or cli_size == 0:
        raise ImageFormatError("image has no CLI header, it is not a managed assembly")

    sections = []
    table = optional + optional_size
    for index in range(section_count):
        vsize, vaddr, raw_size, raw_pointer = _unpack("<IIII", data, table + 40 * index + 8)
        sections.append(_Section(vaddr, vsize, raw_size, raw_pointer))

    cli = _rva_to_offset(sections, cli_rva)
    metadata_rva, _ = _unpack("<II", data, cli + 8)
    metadata = _rva_to_offset(sections, metadata_rva)

    (signature,) = _unpack("<I", data, metadata)
    if signature != METADATA_SIGNATURE:
        raise ImageFormatError("bad metadata root signature")
    return metadata


def read_runtime_version(data: bytes) -> str:
    """Return the metadata runtime version string of an in-memory image."""
    metadata = _metadata_root(data)
    (length,) = _unpack("<I", data, metadata + 12)
    raw = data[metadata + 16 : metadata + 16 + length]
    if len(raw) < length:
        raise ImageFormatError("truncated metadata version string")
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _read_image(path: str | Path) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ImageFormatError(f"cannot read {path}: {e}") from e


def image_runtime_version(path: str | Path) -> str:
    """Return the runtime version string recorded in a managed assembly file.

    Raises:
        ImageFormatError: If the file cannot be read or is not a managed image
    """
    return read_runtime_version(_read_image(path))


# =============================================================================
# METADATA TABLES
# =============================================================================


class _Index(NamedTuple):
    """A row index into one of ``tables``; a plain table index has no tag bits."""

    tag_bits: int
    tables: tuple[int, ...]


def _table(number: int) -> _Index:
    return _Index(0, (number,))


STRING, GUID, BLOB = "string", "guid", "blob"
_HEAP_SIZE_FLAGS = {STRING: 0x01, GUID: 0x02, BLOB: 0x04}
_EXTRA_DATA_FLAG = 0x40

_TYPE_DEF_OR_REF = _Index(2, (0x02, 0x01, 0x1B))
_HAS_CONSTANT = _Index(2, (0x04, 0x08, 0x17))
_HAS_CUSTOM_ATTRIBUTE = _Index(
    5,
    (
        *(0x06, 0x04, 0x01, 0x02, 0x08, 0x09, 0x0A, 0x00, 0x0E, 0x17, 0x14),
        *(0x11, 0x1A, 0x1B, 0x20, 0x23, 0x26, 0x27, 0x28, 0x2A, 0x2C, 0x2B),
    ),
)
_HAS_FIELD_MARSHAL = _Index(1, (0x04, 0x08))
_HAS_DECL_SECURITY = _Index(2, (0x02, 0x06, 0x20))
_MEMBER_REF_PARENT = _Index(3, (0x02, 0x01, 0x1A, 0x06, 0x1B))
_HAS_SEMANTICS = _Index(1, (0x14, 0x17))
_METHOD_DEF_OR_REF = _Index(1, (0x06, 0x0A))
_MEMBER_FORWARDED = _Index(1, (0x04, 0x06))
_CUSTOM_ATTRIBUTE_TYPE = _Index(3, (0x06, 0x0A))
_RESOLUTION_SCOPE = _Index(2, (0x00, 0x1A, 0x23, 0x01))

# Columns of every table stored before the Assembly table. Integers are fixed
# widths in bytes.
_TABLE_COLUMNS = {
    0x00: (2, STRING, GUID, GUID, GUID),  # Module
    0x01: (_RESOLUTION_SCOPE, STRING, STRING),  # TypeRef
    0x02: (4, STRING, STRING, _TYPE_DEF_OR_REF, _table(0x04), _table(0x06)),  # TypeDef
    0x03: (_table(0x04),),  # FieldPtr
    0x04: (2, STRING, BLOB),  # Field
    0x05: (_table(0x06),),  # MethodPtr
    0x06: (4, 2, 2, STRING, BLOB, _table(0x08)),  # MethodDef
    0x07: (_table(0x08),),  # ParamPtr
    0x08: (2, 2, STRING),  # Param
    0x09: (_table(0x02), _TYPE_DEF_OR_REF),  # InterfaceImpl
    0x0A: (_MEMBER_REF_PARENT, STRING, BLOB),  # MemberRef
    0x0B: (2, _HAS_CONSTANT, BLOB),  # Constant
    0x0C: (_HAS_CUSTOM_ATTRIBUTE, _CUSTOM_ATTRIBUTE_TYPE, BLOB),  # CustomAttribute
    0x0D: (_HAS_FIELD_MARSHAL, BLOB),  # FieldMarshal
    0x0E: (2, _HAS_DECL_SECURITY, BLOB),  # DeclSecurity
    0x0F: (2, 4, _table(0x02)),  # ClassLayout
    0x10: (4, _table(0x04)),  # FieldLayout
    0x11: (BLOB,),  # StandAloneSig
    0x12: (_table(0x02), _table(0x14)),  # EventMap
    0x13: (_table(0x14),),  # EventPtr
    0x14: (2, STRING, _TYPE_DEF_OR_REF),  # Event
    0x15: (_table(0x02), _table(0x17)),  # PropertyMap
    0x16: (_table(0x17),),  # PropertyPtr
    0x17: (2, STRING, BLOB),  # Property
    0x18: (2, _table(0x06), _HAS_SEMANTICS),  # MethodSemantics
    0x19: (_table(0x02), _METHOD_DEF_OR_REF, _METHOD_DEF_OR_REF),  # MethodImpl
    0x1A: (STRING,),  # ModuleRef
    0x1B: (BLOB,),  # TypeSpec
    0x1C: (2, _MEMBER_FORWARDED, STRING, _table(0x1A)),  # ImplMap
    0x1D: (4, _table(0x04)),  # FieldRVA
    0x1E: (4, 4),  # EncLog
    0x1F: (4,),  # EncMap
}


def _column_size(column: int | str | _Index, rows: dict[int, int], heap_sizes: int) -> int:
    if isinstance(column, int):
        return column
    if isinstance(column, str):
        return 4 if heap_sizes & _HEAP_SIZE_FLAGS[column] else 2
    largest = max(rows.get(table, 0) for table in column.tables)
    return 2 if largest < 1 << (16 - column.tag_bits) else 4


def _streams(data: bytes, metadata: int) -> dict[str, int]:
    """Map each metadata stream name to the file offset of its data."""
    (length,) = _unpack("<I", data, metadata + 12)
    header = metadata + 16 + length
    (count,) = _unpack("<H", data, header + 2)
    header += 4

    streams = {}
    for _ in range(count):
        offset, _size = _unpack("<II", data, header)
        end = data.find(b"\0", header + 8)
        if end < 0:
            raise ImageFormatError("truncated metadata stream header")
        streams[data[header + 8 : end].decode("ascii", errors="replace")] = metadata + offset
        # Names are null terminated and padded to four bytes
        header += 8 + (end - header - 8 + 4) // 4 * 4
    return streams


def _heap_string(data: bytes, heap: int, index: int) -> str:
    start = heap + index
    end = data.find(b"\0", start)
    if end < 0:
        raise ImageFormatError("unterminated metadata string")
    return data[start:end].decode("utf-8", errors="replace")


def _heap_blob(data: bytes, heap: int, index: int) -> bytes:
    start = heap + index
    (first,) = _unpack("<B", data, start)
    if first & 0x80 == 0:
        length, start = first, start + 1
    elif first & 0xC0 == 0x80:
        (length,) = _unpack(">H", data, start)
        length, start = length & 0x3FFF, start + 2
    else:
        (length,) = _unpack(">I", data, start)
        length, start = length & 0x1FFFFFFF, start + 4
    blob = data[start : start + length]
    if len(blob) < length:
        raise ImageFormatError("truncated metadata blob")
    return blob


def public_key_token(public_key: bytes) -> str:
    """Last eight bytes of the key's SHA-1 hash, reversed, in hex."""
    return hashlib.sha1(public_key).digest()[-8:][::-1].hex()


def read_assembly_identity(data: bytes) -> "AssemblyIdentity":
    """Return the identity recorded in the Assembly table of an in-memory image."""
    metadata = _metadata_root(data)
    streams = _streams(data, metadata)
    tables = streams.get("#~", streams.get("#-"))
    if tables is None:
        raise ImageFormatError("metadata has no table stream")
    for heap in ("#Strings", "#Blob"):
        if heap not in streams:
            raise ImageFormatError(f"metadata has no {heap} heap")

    (heap_sizes,) = _unpack("<B", data, tables + 6)
    (valid,) = _unpack("<Q", data, tables + 8)
    offset = tables + 24
    rows = {}
    for number in range(64):
        if valid >> number & 1:
            (rows[number],) = _unpack("<I", data, offset)
            offset += 4
    if heap_sizes & _EXTRA_DATA_FLAG:
        offset += 4

    if not rows.get(ASSEMBLY_TABLE):
        raise ImageFormatError("image has no assembly manifest")
    for number in sorted(n for n in rows if n < ASSEMBLY_TABLE):
        if number not in _TABLE_COLUMNS:
            raise ImageFormatError(f"unknown metadata table {number:#x}")
        row_size = sum(_column_size(c, rows, heap_sizes) for c in _TABLE_COLUMNS[number])
        offset += rows[number] * row_size

    blob_index = "I" if heap_sizes & _HEAP_SIZE_FLAGS[BLOB] else "H"
    string_index = "I" if heap_sizes & _HEAP_SIZE_FLAGS[STRING] else "H"
    (_hash, major, minor, build, revision, _flags, key, name, culture) = _unpack(
        f"<IHHHHI{blob_index}{string_index}{string_index}", data, offset
    )

    public_key = _heap_blob(data, streams["#Blob"], key) if key else b""
    return AssemblyIdentity(
        name=_heap_string(data, streams["#Strings"], name),
        version=f"{major}.{minor}.{build}.{revision}",
        culture=_heap_string(data, streams["#Strings"], culture) or "neutral",
        public_key_token=public_key_token(public_key) if public_key else None,
    )


def image_assembly_identity(path: str | Path) -> "AssemblyIdentity":
    """Return the identity of a managed assembly file.

    Raises:
        ImageFormatError: If the file cannot be read or carries no assembly manifest
    """
    return read_assembly_identity(_read_image(path))


@dataclass(frozen=True)
class AssemblyIdentity:
    """Display identity of a strong-named assembly.

    ``str()`` renders the familiar full name, e.g.
    ``System.Data.SQLite, Version=1.0.89.0, Culture=neutral, PublicKeyToken=db937bc2d44ff139``.
    """

    name: str
    version: str = "1.0.0.0"
    culture: str = "neutral"
    public_key_token: str | None = None

    def with_overrides(
        self, version: str | None = None, public_key_token: str | None = None
    ) -> "AssemblyIdentity":
        """Replace the version or token where one is given."""
        changes = {}
        if version:
            changes["version"] = version
        if public_key_token:
            changes["public_key_token"] = public_key_token
        return dataclasses.replace(self, **changes)

    def __str__(self) -> str:
        token = self.public_key_token.lower() if self.public_key_token else "null"
        return (
            f"{self.name}, Version={self.version}, Culture={self.culture}, "
            f"PublicKeyToken={token}"
        )
