# targetgen
# Copyright (c) 2017 Arm Limited
# Copyright (c) 2021 Chris Reed
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

import io
import logging
from typing import (IO, List, Optional, Union)

from elftools.elf.elffile import ELFFile
from elftools.elf.constants import (SH_FLAGS, P_FLAGS)
from elftools.elf.sections import SymbolTableSection

from ...core.memory_map import MemoryRange
from .decoder import ElfSymbolDecoder

LOG = logging.getLogger(__name__)

class ELFSection(MemoryRange):
    """@brief Memory range for a section of an ELF file.

    Objects of this class represent sections of an ELF file. See the ELFBinaryFile class documentation
    for details of how sections are selected and how to get instances of this class.

    The contents of the ELF section can be read via the `data` property as a `bytes` object. The data is
    read from the file only once and cached.
    """

    def __init__(self, elf: "ELFBinaryFile", sect) -> None:
        self._elf = elf
        self._section = sect
        self._name = self._section.name
        self._data: Optional[bytes] = None

        super().__init__(start=self._section['sh_addr'], length=self._section['sh_size'])

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return self._section['sh_type']

    @property
    def flags(self) -> int:
        return self._section['sh_flags']

    @property
    def data(self) -> bytes:
        if self._data is None:
            if self.type == 'SHT_NOBITS':
                self._data = bytes(self.length)
            else:
                self._data = bytes(self._section.data())
        return self._data

    @property
    def flags_description(self) -> str:
        flags = self.flags
        flagsDesc = ""
        if flags & SH_FLAGS.SHF_WRITE:
            flagsDesc += "WRITE|"
        if flags & SH_FLAGS.SHF_ALLOC:
            flagsDesc += "ALLOC|"
        if flags & SH_FLAGS.SHF_EXECINSTR:
            flagsDesc += "EXECINSTR"
        return flagsDesc.rstrip('|')

    def __eq__(self, other: object) -> bool:
        # Include section name in equality test.
        if not isinstance(other, ELFSection):
            return NotImplemented
        return super().__eq__(other) and self.name == other.name

    __hash__ = MemoryRange.__hash__

    def __repr__(self) -> str:
        return "<ELFSection@0x{0:x} {1} {2} {3} {4} {5}>".format(
            id(self), self.name, self.type, self.flags_description, hex(self.start), hex(self.length))

class ELFSegment(MemoryRange):
    """@brief Memory range for one loadable (PT_LOAD) program segment.

    The range covers the segment's memory image at its virtual address, so its length is
    `p_memsz`. Only the first `p_filesz` bytes are backed by the file; the `data` property
    returns the full memory image with the remainder zero filled.
    """

    def __init__(self, index: int, seg) -> None:
        self._index = index
        self._segment = seg
        self._data: Optional[bytes] = None

        super().__init__(start=seg['p_vaddr'], length=seg['p_memsz'])

    @property
    def index(self) -> int:
        return self._index

    @property
    def physical_address(self) -> int:
        return self._segment['p_paddr']

    @property
    def file_size(self) -> int:
        return self._segment['p_filesz']

    @property
    def memory_size(self) -> int:
        return self._segment['p_memsz']

    @property
    def flags(self) -> int:
        return self._segment['p_flags']

    @property
    def is_executable(self) -> bool:
        return bool(self.flags & P_FLAGS.PF_X)

    @property
    def is_writable(self) -> bool:
        return bool(self.flags & P_FLAGS.PF_W)

    @property
    def data(self) -> bytes:
        if self._data is None:
            file_data = bytes(self._segment.data())[:self.memory_size]
            self._data = file_data + bytes(self.memory_size - len(file_data))
        return self._data

    @property
    def flags_description(self) -> str:
        return "".join(c if self.flags & f else '-'
                for c, f in (('R', P_FLAGS.PF_R), ('W', P_FLAGS.PF_W), ('X', P_FLAGS.PF_X)))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ELFSegment):
            return NotImplemented
        return super().__eq__(other) and self.index == other.index

    __hash__ = MemoryRange.__hash__

    def __repr__(self) -> str:
        return "<ELFSegment@0x{0:x} #{1} {2} vaddr={3:#x} filesz={4:#x} memsz={5:#x}>".format(
            id(self), self.index, self.flags_description, self.start, self.file_size, self.memory_size)

class ELFBinaryFile:
    """@brief An ELF binary executable file.

    Examines the ELF and provides lists of useful data: section objects, and loadable segment
    objects.

    An ELFSection object is created for each of the sections of the file that are loadable code or
    data, or otherwise occupy memory. More specifically, the list of sections contains any section
    with a type of `SHT_PROGBITS` or `SHT_NOBITS`. Also, at least one of the `SHF_WRITE`,
    `SHF_ALLOC`, or `SHF_EXECINSTR` flags must be set.

    An ELFSegment object is created for every `PT_LOAD` program header with a non-zero memory size.

    The image may be passed as a path, as a bytes object, or as an open binary file. Images given
    as bytes are parsed from memory. pyelftools exceptions (`ELFError` and subclasses) propagate
    to the caller.
    """

    def __init__(self, elf: Union[str, bytes, bytearray, IO[bytes]]) -> None:
        self._owns_file = False
        if isinstance(elf, str):
            self._file: IO[bytes] = open(elf, 'rb')
            self._owns_file = True
        elif isinstance(elf, (bytes, bytearray)):
            self._file = io.BytesIO(bytes(elf))
            self._owns_file = True
        else:
            self._file = elf
        self._elf = ELFFile(self._file)

        self._symbol_decoder: Optional[ElfSymbolDecoder] = None

        self._extract_sections()
        self._extract_segments()

    def __del__(self) -> None:
        """@brief Close the ELF file if it is owned by this instance."""
        if hasattr(self, '_owns_file') and self._owns_file:
            self.close()

    def _extract_sections(self) -> None:
        """Get list of interesting sections."""
        self._sections = []
        sections = self._elf.iter_sections()
        for s in sections:
            # Skip sections not of these types.
            if s['sh_type'] not in ('SHT_PROGBITS', 'SHT_NOBITS'):
                continue

            # Skip sections that don't have one of these flags set.
            if s['sh_flags'] & (SH_FLAGS.SHF_WRITE | SH_FLAGS.SHF_ALLOC | SH_FLAGS.SHF_EXECINSTR) == 0:
                continue

            self._sections.append(ELFSection(self, s))
        self._sections.sort(key=lambda x: x.start)

    def _extract_segments(self) -> None:
        """Get list of loadable segments, in program header order."""
        self._segments = []
        for i, seg in enumerate(self._elf.iter_segments()):
            if seg['p_type'] != 'PT_LOAD':
                continue
            if seg['p_memsz'] == 0:
                LOG.debug("skipping empty PT_LOAD segment #%d", i)
                continue
            self._segments.append(ELFSegment(i, seg))

    def close(self) -> None:
        self._file.close()
        self._owns_file = False

    def read(self, addr: int, size: int) -> Optional[bytes]:
        """@brief Read program data from the elf file.

        @param addr Virtual address to read from.
        @param size Number of bytes to read.
        @return Requested data or None if the range is not fully contained in one loadable segment.
        """
        for segment in self._segments:
            if segment.contains_range(addr, length=size):
                start = addr - segment.start
                return segment.data[start:start + size]
        return None

    @property
    def is_little_endian(self) -> bool:
        return self._elf.little_endian

    @property
    def elf_class(self) -> int:
        """@brief Either 32 or 64."""
        return self._elf.elfclass

    @property
    def machine(self) -> str:
        """@brief The e_machine value as a pyelftools string, for instance 'EM_ARM'."""
        return self._elf['e_machine']

    @property
    def sections(self) -> List[ELFSection]:
        """@brief Access the list of sections in the ELF file.
        @return A list of ELFSection objects sorted by start address.
        """
        return self._sections

    @property
    def segments(self) -> List[ELFSegment]:
        """@brief Access the list of loadable segments in the ELF file.
        @return A list of ELFSegment objects in program header order.
        """
        return self._segments

    @property
    def has_symbol_table(self) -> bool:
        return isinstance(self._elf.get_section_by_name('.symtab'), SymbolTableSection)

    @property
    def symbol_decoder(self) -> ElfSymbolDecoder:
        if self._symbol_decoder is None:
            self._symbol_decoder = ElfSymbolDecoder(self._elf)
        return self._symbol_decoder
