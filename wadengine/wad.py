"""Reading WAD archives: the lump directory, palettes, flats, patches and wall textures."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from typing import Iterator, Optional, Union

from wadengine.names import compare_nocase

NUM_COLORS = 256
PALETTE_SIZE = NUM_COLORS * 3
FLAT_SIZE = 64
TRANSPARENT = 247
_HEADER_SIZE = 12
_DIRECTORY_ENTRY_SIZE = 16
_END_OF_COLUMN = 255


class WadError(Exception):
    """Raised when a WAD archive or one of its lumps cannot be read."""


def _unpack(fmt: str, data: bytes, offset: int) -> int:
    try:
        return struct.unpack_from(fmt, data, offset)[0]
    except struct.error as exc:
        raise WadError(f"data ends before offset {offset}") from exc


def _u16(data: bytes, offset: int) -> int:
    return _unpack("<H", data, offset)


def _i16(data: bytes, offset: int) -> int:
    return _unpack("<h", data, offset)


def _u32(data: bytes, offset: int) -> int:
    return _unpack("<I", data, offset)


def _byte(data: bytes, offset: int) -> int:
    if not 0 <= offset < len(data):
        raise WadError(f"data ends before offset {offset}")
    return data[offset]


def _name(raw: bytes) -> str:
    return raw.decode("latin-1").split("\0", 1)[0]


@dataclass(frozen=True)
class Lump:
    """A named block of data in a WAD archive."""

    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Patch:
    """A picture in column-post format, decoded to row-major palette indices.

    Pixels not covered by any post hold TRANSPARENT.
    """

    width: int
    height: int
    data: bytes


@dataclass(frozen=True)
class FlatTexture:
    """A 64x64 floor or ceiling picture."""

    name: str
    data: bytes


@dataclass(frozen=True)
class WallTexture:
    """A wall texture composed from one or more patches."""

    name: str
    width: int
    height: int
    data: bytes


@dataclass
class Wad:
    """A loaded WAD archive."""

    identification: str
    lumps: list[Lump] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lumps)

    def __iter__(self) -> Iterator[Lump]:
        return iter(self.lumps)

    def __getitem__(self, index: int) -> Lump:
        return self.lumps[index]

    def find_lump(self, name: str) -> Optional[int]:
        """Return the index of the first lump with this name, ignoring case, or None."""
        return next(
            (
                index
                for index, lump in enumerate(self.lumps)
                if compare_nocase(lump.name, name) == 0
            ),
            None,
        )

    def _require(self, name: str) -> Lump:
        index = self.find_lump(name)
        if index is None:
            raise WadError(f"lump {name!r} not found")
        return self.lumps[index]

    def read_playpal(self) -> list[bytes]:
        """Return the palettes of the PLAYPAL lump, each 256 RGB triples."""
        lump = self._require("PLAYPAL")
        count = lump.size // PALETTE_SIZE
        return [
            lump.data[start : start + PALETTE_SIZE]
            for start in range(0, count * PALETTE_SIZE, PALETTE_SIZE)
        ]

    def read_flats(self) -> list[Optional[FlatTexture]]:
        """Return the flats between F_START and F_END.

        Entry k belongs to the k-th lump after F_START, so a sector's flat
        index can be used directly. Lumps that are not 64x64 flats hold
        None, and each of them shortens the list by one from the end.
        """
        start = self.find_lump("F_START")
        end = self.find_lump("F_END")
        if start is None or end is None:
            raise WadError("flat markers F_START/F_END not found")
        entries: list[Optional[FlatTexture]] = []
        invalid = 0
        for lump in self.lumps[start + 1 : end]:
            if lump.size != FLAT_SIZE * FLAT_SIZE:
                invalid += 1
                entries.append(None)
            else:
                entries.append(FlatTexture(lump.name, lump.data))
        return entries[: max(len(entries) - invalid, 0)]

    def read_patch(self, name: str) -> Patch:
        """Decode the patch lump with this name."""
        data = self._require(name).data
        width = _u16(data, 0)
        height = _u16(data, 2)
        pixels = bytearray([TRANSPARENT]) * (width * height)
        for x in range(width):
            offset = _u32(data, 8 + x * 4)
            while True:
                top = _byte(data, offset)
                offset += 1
                if top == _END_OF_COLUMN:
                    break
                length = _byte(data, offset)
                offset += 2
                column = data[offset : offset + length]
                if len(column) != length:
                    raise WadError(f"patch {name!r} ends inside a post")
                offset += length + 1
                for y, value in enumerate(column):
                    index = (y + top) * width + x
                    if index >= len(pixels):
                        raise WadError(f"patch {name!r} has a post past its height")
                    pixels[index] = value
        return Patch(width, height, bytes(pixels))

    def read_patches(self) -> list[Patch]:
        """Decode every patch named in PNAMES, in order.

        A name without a matching lump yields an empty patch.
        """
        data = self._require("PNAMES").data
        count = _u32(data, 0)
        patches = []
        for index in range(count):
            raw = data[4 + index * 8 : 12 + index * 8]
            if len(raw) != 8:
                raise WadError("PNAMES ends before its last name")
            name = _name(raw)
            if self.find_lump(name) is None:
                patches.append(Patch(0, 0, b""))
            else:
                patches.append(self.read_patch(name))
        return patches

    def read_textures(self, lumpname: str) -> list[WallTexture]:
        """Compose the wall textures described by a TEXTURE1-style lump."""
        patches = self.read_patches()
        data = self._require(lumpname).data
        count = _u32(data, 0)
        textures = []
        for index in range(count):
            offset = _u32(data, 4 + index * 4)
            raw_name = data[offset : offset + 8]
            if len(raw_name) != 8:
                raise WadError(f"{lumpname} ends inside texture {index}")
            width = _u16(data, offset + 12)
            height = _u16(data, offset + 14)
            pixels = bytearray([TRANSPARENT]) * (width * height)
            for j in range(_u16(data, offset + 20)):
                base = offset + 22 + j * 10
                origin_x = _i16(data, base)
                origin_y = _i16(data, base + 2)
                patch_index = _u16(data, base + 4)
                if patch_index >= len(patches):
                    raise WadError(f"texture refers to unknown patch {patch_index}")
                _blit(pixels, width, height, patches[patch_index], origin_x, origin_y)
            textures.append(WallTexture(_name(raw_name), width, height, bytes(pixels)))
        return textures


def _blit(
    pixels: bytearray, width: int, height: int, patch: Patch, origin_x: int, origin_y: int
) -> None:
    for py in range(patch.height):
        ty = py + origin_y
        if not 0 <= ty < height:
            continue
        row = patch.data[py * patch.width : (py + 1) * patch.width]
        for px, value in enumerate(row):
            tx = px + origin_x
            if 0 <= tx < width and value != TRANSPARENT:
                pixels[ty * width + tx] = value


def parse_wad(data: bytes) -> Wad:
    """Parse a whole WAD archive held in memory."""
    data = bytes(data)
    if len(data) < _HEADER_SIZE:
        raise WadError("file is too short for a WAD header")
    identification = _name(data[:4])
    num_lumps = _u32(data, 4)
    directory = _u32(data, 8)
    lumps = []
    for index in range(num_lumps):
        entry = directory + index * _DIRECTORY_ENTRY_SIZE
        position = _u32(data, entry)
        size = _u32(data, entry + 4)
        raw_name = data[entry + 8 : entry + 16]
        if len(raw_name) != 8:
            raise WadError(f"directory entry {index} is truncated")
        if position + size > len(data):
            raise WadError(f"lump {_name(raw_name)!r} lies past the end of the file")
        lumps.append(Lump(_name(raw_name), data[position : position + size]))
    return Wad(identification, lumps)


def load_wad(path: Union[str, "os.PathLike[str]"]) -> Wad:
    """Read and parse a WAD archive from a file."""
    with open(path, "rb") as handle:
        return parse_wad(handle.read())