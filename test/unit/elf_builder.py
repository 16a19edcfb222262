# targetgen
# Copyright (c) 2026 targetgen authors
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Builds small ELF images in memory for flash algorithm tests."""

import struct
from typing import (List, NamedTuple, Optional, Sequence, Tuple)

EM_ARM = 40
EM_RISCV = 243

PT_LOAD = 1
PF_X = 1
PF_W = 2
PF_R = 4

SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_NOBITS = 8
SHF_WRITE = 1
SHF_ALLOC = 2
SHF_EXECINSTR = 4
SHN_ABS = 0xfff1

STB_LOCAL = 0
STB_GLOBAL = 1
STT_OBJECT = 1
STT_FUNC = 2

class Segment(NamedTuple):
    vaddr: int
    data: bytes
    memsz: Optional[int] = None
    flags: int = PF_R | PF_X

class Section(NamedTuple):
    name: str
    addr: int
    size: int
    flags: int = SHF_ALLOC | SHF_EXECINSTR
    nobits: bool = False

class Symbol(NamedTuple):
    name: str
    value: int
    size: int = 0
    type: int = STT_FUNC
    bind: int = STB_GLOBAL

class _StringTable:
    def __init__(self) -> None:
        self.data = bytearray(b"\x00")

    def add(self, s: str) -> int:
        offset = len(self.data)
        self.data += s.encode() + b"\x00"
        return offset

def _pad(buf: bytearray, alignment: int) -> None:
    buf += bytes(-len(buf) % alignment)

def default_sections(segments: Sequence[Segment]) -> List[Section]:
    """One section per segment, plus a .bss for any zero filled tail."""
    sections = []
    used = set()
    for seg in segments:
        if seg.flags & PF_X:
            name, flags = ".text", SHF_ALLOC | SHF_EXECINSTR
        elif seg.flags & PF_W:
            name, flags = ".data", SHF_ALLOC | SHF_WRITE
        else:
            name, flags = ".rodata", SHF_ALLOC
        while name in used:
            name += "_"
        used.add(name)
        if seg.data:
            sections.append(Section(name, seg.vaddr, len(seg.data), flags))
        memsz = seg.memsz if seg.memsz is not None else len(seg.data)
        if memsz > len(seg.data):
            bss_name = ".bss"
            while bss_name in used:
                bss_name += "_"
            used.add(bss_name)
            sections.append(Section(bss_name, seg.vaddr + len(seg.data), memsz - len(seg.data),
                    SHF_ALLOC | SHF_WRITE, nobits=True))
    return sections

def build_elf(
        segments: Sequence[Segment],
        symbols: Sequence[Symbol] = (),
        sections: Optional[Sequence[Section]] = None,
        elf_class: int = 32,
        little_endian: bool = True,
        machine: int = EM_ARM,
        symtab: bool = True,
        symtab_type: int = SHT_SYMTAB,
        ) -> bytes:
    """Return the bytes of an executable ELF image.

    Segment contents follow the ELF and program headers. Section headers point into the segment
    contents, so section and segment views of the image agree.
    """
    e = "<" if little_endian else ">"
    is64 = elf_class == 64
    ehsize = 64 if is64 else 52
    phentsize = 56 if is64 else 32
    shentsize = 64 if is64 else 40
    symentsize = 24 if is64 else 16
    if sections is None:
        sections = default_sections(segments)

    image = bytearray(ehsize + phentsize * len(segments))

    # Segment contents.
    seg_offsets = []
    for seg in segments:
        _pad(image, 4)
        seg_offsets.append(len(image))
        image += seg.data

    def section_offset(sect: Section) -> int:
        for seg, offset in zip(segments, seg_offsets):
            if seg.vaddr <= sect.addr < seg.vaddr + max(len(seg.data), seg.memsz or 0):
                return offset + sect.addr - seg.vaddr
        return 0

    def section_index(addr: int) -> int:
        for i, sect in enumerate(sections):
            if sect.addr <= addr < sect.addr + max(sect.size, 1):
                return i + 1
        return SHN_ABS

    shstrtab = _StringTable()
    # (name offset, type, flags, addr, offset, size, link, info, addralign, entsize)
    headers: List[Tuple[int, ...]] = [(0,) * 10]
    for sect in sections:
        headers.append((shstrtab.add(sect.name), SHT_NOBITS if sect.nobits else SHT_PROGBITS,
                sect.flags, sect.addr, section_offset(sect), sect.size, 0, 0, 4, 0))

    if symtab:
        strtab = _StringTable()
        ordered = sorted(symbols, key=lambda s: s.bind != STB_LOCAL)
        symdata = bytearray(symentsize)
        for sym in ordered:
            info = (sym.bind << 4) | sym.type
            name = strtab.add(sym.name)
            shndx = section_index(sym.value)
            if is64:
                symdata += struct.pack(e + "IBBHQQ", name, info, 0, shndx, sym.value, sym.size)
            else:
                symdata += struct.pack(e + "IIIBBH", name, sym.value, sym.size, info, 0, shndx)
        num_locals = 1 + sum(1 for s in ordered if s.bind == STB_LOCAL)

        _pad(image, 8)
        symtab_offset = len(image)
        image += symdata
        strtab_offset = len(image)
        image += strtab.data
        symtab_index = len(headers)
        headers.append((shstrtab.add(".symtab"), symtab_type, 0, 0, symtab_offset, len(symdata),
                symtab_index + 1, num_locals, 8 if is64 else 4, symentsize))
        headers.append((shstrtab.add(".strtab"), SHT_STRTAB, 0, 0, strtab_offset, len(strtab.data),
                0, 0, 1, 0))

    shstrndx = len(headers)
    name = shstrtab.add(".shstrtab")
    shstrtab_offset = len(image)
    image += shstrtab.data
    headers.append((name, SHT_STRTAB, 0, 0, shstrtab_offset, len(shstrtab.data), 0, 0, 1, 0))

    _pad(image, 8)
    shoff = len(image)
    for h in headers:
        image += struct.pack(e + ("IIQQQQIIQQ" if is64 else "IIIIIIIIII"), *h)

    # Program headers.
    for i, (seg, offset) in enumerate(zip(segments, seg_offsets)):
        memsz = seg.memsz if seg.memsz is not None else len(seg.data)
        if is64:
            phdr = struct.pack(e + "IIQQQQQQ", PT_LOAD, seg.flags, offset, seg.vaddr, seg.vaddr,
                    len(seg.data), memsz, 4)
        else:
            phdr = struct.pack(e + "IIIIIIII", PT_LOAD, offset, seg.vaddr, seg.vaddr,
                    len(seg.data), memsz, seg.flags, 4)
        image[ehsize + i * phentsize:ehsize + (i + 1) * phentsize] = phdr

    # ELF header.
    ident = b"\x7fELF" + bytes([2 if is64 else 1, 1 if little_endian else 2, 1]) + bytes(9)
    if is64:
        header = struct.pack(e + "HHIQQQIHHHHHH", 2, machine, 1, 0, ehsize, shoff, 0,
                ehsize, phentsize, len(segments), shentsize, len(headers), shstrndx)
    else:
        header = struct.pack(e + "HHIIIIIHHHHHH", 2, machine, 1, 0, ehsize, shoff, 0x5000000,
                ehsize, phentsize, len(segments), shentsize, len(headers), shstrndx)
    image[0:ehsize] = ident + header
    return bytes(image)

FLASH_DEVICE_SIZE = 160

def flash_device(
        name: str = "Test Flash",
        start: int = 0x08000000,
        size: int = 0x10000,
        page_size: int = 0x100,
        sectors: Sequence[Tuple[int, int]] = ((0x1000, 0),),
        little_endian: bool = True,
        value_empty: int = 0xff,
        prog_timeout: int = 100,
        erase_timeout: int = 3000,
        terminate: bool = True,
        ) -> bytes:
    """Return a FlashDevice structure. Sectors are (size, offset) pairs as stored in the image."""
    e = "<" if little_endian else ">"
    data = struct.pack(e + "H128sHLLLLBxxxLL", 0x101, name.encode(), 1, start, size, page_size, 0,
            value_empty, prog_timeout, erase_timeout)
    for sector_size, offset in sectors:
        data += struct.pack(e + "LL", sector_size, offset)
    if terminate:
        data += struct.pack(e + "LL", 0xFFFFFFFF, 0xFFFFFFFF)
    return data

CODE = bytes((i * 7) & 0xff for i in range(0x100))
DATA = b"\x11" * 0x10
DATA_MEMSZ = 0x20
DEVICE_ADDRESS = 0x1000

ENTRY_SYMBOLS = {
    "Init": 0x01,
    "UnInit": 0x11,
    "EraseSector": 0x21,
    "ProgramPage": 0x31,
    "EraseChip": 0x41,
    "Verify": 0x51,
    "BlankCheck": 0x61,
    }

def simple_algo(
        omit: Sequence[str] = (),
        code: bytes = CODE,
        elf_class: int = 32,
        little_endian: bool = True,
        machine: int = EM_ARM,
        device: Optional[bytes] = None,
        with_device: bool = True,
        symtab: bool = True,
        symtab_type: int = SHT_SYMTAB,
        ) -> bytes:
    """Return a flash algorithm image laid out like a typical FLM.

    Code is at 0 followed directly by data with a zero filled tail, and the FlashDevice structure
    is in its own read only segment at DEVICE_ADDRESS.
    """
    segments = [
        Segment(0, code),
        Segment(len(code), DATA, memsz=DATA_MEMSZ, flags=PF_R | PF_W),
        ]
    symbols = [Symbol(name, addr) for name, addr in ENTRY_SYMBOLS.items() if name not in omit]
    if with_device:
        if device is None:
            device = flash_device(little_endian=little_endian)
        segments.append(Segment(DEVICE_ADDRESS, device, flags=PF_R))
        symbols.append(Symbol("FlashDevice", DEVICE_ADDRESS, FLASH_DEVICE_SIZE, type=STT_OBJECT))
    return build_elf(segments, symbols, elf_class=elf_class, little_endian=little_endian,
            machine=machine, symtab=symtab, symtab_type=symtab_type)
