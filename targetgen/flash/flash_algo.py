# targetgen
# Copyright (c) 2017-2020 Arm Limited
# Copyright (c) 2021-2023 Chris Reed
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

import os
import struct
import logging
import itertools
from dataclasses import (dataclass, field)
from typing import (Dict, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING)

from elftools.common.exceptions import ELFError
from elftools.construct.core import ConstructError
from elftools.elf.constants import SH_FLAGS

from ..debug.elf.elf import ELFBinaryFile
from ..core.memory_map import (MemoryRange, SectorInfo)
from ..core import exceptions
from ..utility.mask import (align_down, align_up)

if TYPE_CHECKING:
    from ..debug.elf.elf import ELFSegment

LOG = logging.getLogger(__name__)

## @brief Policies for choosing the primary executable segment of an image.
SEGMENT_POLICIES = ("largest", "single")

## @brief Default limit on the memory size of a loadable segment of an image.
DEFAULT_MAX_SEGMENT_SIZE = 4 * 1024 * 1024

class FlashDeviceInfo:
    """@brief Wrapper class for the non-executable information in an FLM file.

    The information comes from the `FlashDevice` structure that Keil-style flash algorithms embed
    in their image. Fields are unpacked with the byte order of the image.
    """

    FLASH_DEVICE_STRUCT = "H128sHLLLLBxxxLL"
    FLASH_DEVICE_STRUCT_SIZE = struct.calcsize("<" + FLASH_DEVICE_STRUCT)
    FLASH_SECTORS_STRUCT = "LL"
    FLASH_SECTORS_STRUCT_SIZE = struct.calcsize("<" + FLASH_SECTORS_STRUCT)
    SECTOR_END = 0xFFFFFFFF

    ## Upper bound on sector table entries, to catch unterminated tables.
    MAX_SECTOR_ENTRIES = 512

    def __init__(self, elf: ELFBinaryFile, address: int) -> None:
        self._order = "<" if elf.is_little_endian else ">"
        self.address = address

        data = elf.read(address, self.FLASH_DEVICE_STRUCT_SIZE)
        if data is None:
            raise exceptions.UnsupportedAlgorithmLayout(
                    "FlashDevice structure at %#x is not within a loadable segment" % address)
        values = struct.unpack(self._order + self.FLASH_DEVICE_STRUCT, data)

        self.version = values[0]
        self.name = values[1].split(b"\x00", 1)[0].decode('ascii', errors='replace').strip()
        self.type = values[2]
        self.start = values[3]
        self.size = values[4]
        self.page_size = values[5]
        self.value_empty = values[7]
        self.prog_timeout_ms = values[8]
        self.erase_timeout_ms = values[9]

        # List of (offset, sector-size) pairs, offsets relative to the device start.
        self.sector_info_list: List[Tuple[int, int]] = list(
                self._sector_and_sz_itr(elf, address + self.FLASH_DEVICE_STRUCT_SIZE))

    @classmethod
    def from_elf(cls, elf: ELFBinaryFile) -> Optional["FlashDeviceInfo"]:
        """@brief Return the flash device info of an image, or None if it has no FlashDevice symbol."""
        dev_info = elf.symbol_decoder.get_symbol_for_name("FlashDevice")
        if dev_info is None:
            return None
        return cls(elf, dev_info.address)

    @property
    def end(self) -> int:
        """@brief Address one past the sector table terminator."""
        return self.address + self.FLASH_DEVICE_STRUCT_SIZE \
                + (len(self.sector_info_list) + 1) * self.FLASH_SECTORS_STRUCT_SIZE

    def __str__(self) -> str:
        desc =  "Flash Device:" + os.linesep
        desc += "  name=%s" % self.name + os.linesep
        desc += "  version=0x%x" % self.version + os.linesep
        desc += "  type=%i" % self.type + os.linesep
        desc += "  start=0x%x" % self.start + os.linesep
        desc += "  size=0x%x" % self.size + os.linesep
        desc += "  page_size=0x%x" % self.page_size + os.linesep
        desc += "  value_empty=0x%x" % self.value_empty + os.linesep
        desc += "  prog_timeout_ms=%i" % self.prog_timeout_ms + os.linesep
        desc += "  erase_timeout_ms=%i" % self.erase_timeout_ms + os.linesep
        desc += "  sectors:" + os.linesep
        for sector_start, sector_size in self.sector_info_list:
            desc += ("    start=0x%x, size=0x%x" %
                     (sector_start, sector_size) + os.linesep)
        return desc

    def _sector_and_sz_itr(self, elf: ELFBinaryFile, data_start: int) -> Iterator[Tuple[int, int]]:
        """Iterator which returns starting address and sector size"""
        fmt = self._order + self.FLASH_SECTORS_STRUCT
        for n, entry_start in enumerate(itertools.count(data_start, self.FLASH_SECTORS_STRUCT_SIZE)):
            data = elf.read(entry_start, self.FLASH_SECTORS_STRUCT_SIZE)
            if data is None or n >= self.MAX_SECTOR_ENTRIES:
                raise exceptions.UnsupportedAlgorithmLayout("FlashDevice sector table is not terminated")
            size, start = struct.unpack(fmt, data)
            start_and_size = start, size
            if start_and_size == (self.SECTOR_END, self.SECTOR_END):
                return
            yield start_and_size

class FlashAlgoImage:
    """@brief Parsed, device independent part of a flash algorithm image.

    Construction does all of the ELF work: selecting the primary executable segment, building the
    position independent blob, and resolving the entry point symbols to blob offsets. The result
    does not depend on any pack metadata, so one instance can be shared by every device that
    references the same image.

    Primary segment selection follows the `segment_policy`:
    - `largest`: the executable PT_LOAD segment with the largest memory size. Ties are broken by the
        lowest virtual address. A tie on both is ambiguous.
    - `single`: the image must have exactly one executable PT_LOAD segment.

    The blob is the primary segment followed by every PT_LOAD segment that starts exactly where the
    blob currently ends. Uninitialised (`p_memsz` beyond `p_filesz`) parts are zero filled. A gap,
    an overlap, or the segment holding the FlashDevice structure ends the blob.

    @exception UnsupportedAlgorithmLayout
    @exception MissingRequiredSymbol
    @exception AmbiguousAlgorithmVariant
    """

    REQUIRED_SYMBOLS = (
        "Init",
        "UnInit",
        "EraseSector",
        "ProgramPage",
        )

    EXTRA_SYMBOLS = (
        "EraseChip",
        "Verify",
        "BlankCheck",
        )

    def __init__(self, data: bytes, segment_policy: str = "largest",
            max_segment_size: int = DEFAULT_MAX_SEGMENT_SIZE) -> None:
        """@brief Constructor.
        @param self
        @param data Raw bytes of the ELF image.
        @param segment_policy Either "largest" or "single".
        @param max_segment_size Largest memory size accepted for a loadable segment.
        """
        if segment_policy not in SEGMENT_POLICIES:
            raise ValueError("unknown segment policy '%s'" % segment_policy)

        try:
            elf = ELFBinaryFile(data)
            try:
                self._load(elf, segment_policy, max_segment_size)
            finally:
                elf.close()
        except ELFError as err:
            raise exceptions.UnsupportedAlgorithmLayout("invalid ELF image: %s" % err) from err
        except (struct.error, ConstructError) as err:
            raise exceptions.UnsupportedAlgorithmLayout("truncated ELF image: %s" % err) from err
        except (ValueError, KeyError, IndexError) as err:
            # pyelftools raises these for some corrupt headers and tables.
            raise exceptions.UnsupportedAlgorithmLayout("malformed ELF image: %s" % err) from err

    def _load(self, elf: ELFBinaryFile, segment_policy: str, max_segment_size: int) -> None:
        if not elf.has_symbol_table:
            raise exceptions.UnsupportedAlgorithmLayout("image has no symbol table")

        # Segment data is zero filled up to the memory size, so check sizes before reading any.
        for seg in elf.segments:
            if seg.memory_size > max_segment_size:
                raise exceptions.UnsupportedAlgorithmLayout(
                        "segment #%d memory size %#x exceeds limit of %#x"
                        % (seg.index, seg.memory_size, max_segment_size))

        self.is_little_endian = elf.is_little_endian
        self.elf_class = elf.elf_class
        self.machine = elf.machine
        self.flash_info = FlashDeviceInfo.from_elf(elf)

        primary = self._select_primary_segment(elf.segments, segment_policy)
        segments = self._find_blob_segments(elf.segments, primary)
        LOG.debug("flash algo blob from segments %s", segments)

        self.load_address = primary.start
        self.blob = b"".join(s.data for s in segments)
        self.data_section_offset = self._find_data_offset(elf, segments)
        self.symbols = self._extract_symbols(elf)

    @property
    def is_arm(self) -> bool:
        return self.machine == 'EM_ARM'

    def _select_primary_segment(self, segments: Sequence["ELFSegment"], policy: str) -> "ELFSegment":
        candidates = [s for s in segments if s.is_executable]
        if not candidates:
            raise exceptions.UnsupportedAlgorithmLayout("image has no executable loadable segment")

        if policy == "single":
            if len(candidates) > 1:
                raise exceptions.AmbiguousAlgorithmVariant(
                        "image has %d executable loadable segments" % len(candidates))
            return candidates[0]

        candidates.sort(key=lambda s: (-s.memory_size, s.start))
        if len(candidates) > 1:
            first, second = candidates[0], candidates[1]
            if (first.memory_size, first.start) == (second.memory_size, second.start):
                raise exceptions.AmbiguousAlgorithmVariant(
                        "executable segments #%d and #%d have the same size and address"
                        % (first.index, second.index))
        return candidates[0]

    def _find_blob_segments(self, segments: Sequence["ELFSegment"], primary: "ELFSegment") -> List["ELFSegment"]:
        dev_range = None
        if self.flash_info is not None:
            dev_range = MemoryRange(self.flash_info.address, end=self.flash_info.end - 1)

        result = [primary]
        end = primary.end + 1
        following = sorted((s for s in segments if s.start >= end), key=lambda s: (s.start, s.index))
        for seg in following:
            if seg.start != end:
                break
            if dev_range is not None and seg.intersects_range(range=dev_range):
                break
            result.append(seg)
            end = seg.end + 1
        return result

    def _find_data_offset(self, elf: ELFBinaryFile, segments: Sequence["ELFSegment"]) -> int:
        """@brief Offset of the first writable data within the blob.

        A writable section inside the blob is preferred, since a linker may place code and data in
        one RWX segment. Otherwise the first writable segment is used.
        """
        blob_range = MemoryRange(self.load_address, length=len(self.blob))
        for sect in elf.sections:
            if (sect.flags & SH_FLAGS.SHF_WRITE) and sect.length and blob_range.contains_range(range=sect):
                return sect.start - self.load_address
        for seg in segments:
            if seg.is_writable:
                return seg.start - self.load_address
        return len(self.blob)

    def _extract_symbols(self, elf: ELFBinaryFile) -> Dict[str, Optional[int]]:
        """@brief Resolve entry point symbols to offsets from the start of the blob."""
        blob_range = MemoryRange(self.load_address, length=len(self.blob))
        to_ret: Dict[str, Optional[int]] = {}
        for symbol in self.REQUIRED_SYMBOLS + self.EXTRA_SYMBOLS:
            symbolInfo = elf.symbol_decoder.get_symbol_for_name(symbol)
            if symbolInfo is None:
                if symbol in self.REQUIRED_SYMBOLS:
                    raise exceptions.MissingRequiredSymbol(symbol)
                to_ret[symbol] = None
                continue
            if not blob_range.contains_address(symbolInfo.address):
                raise exceptions.UnsupportedAlgorithmLayout(
                        "symbol %s at %#x is outside of the algorithm blob" % (symbol, symbolInfo.address))
            to_ret[symbol] = symbolInfo.address - self.load_address
        return to_ret

@dataclass(frozen=True)
class AlgorithmMetadata:
    """@brief Pack supplied parameters used to bind an image to a device.

    Every value that is set takes precedence over the same value read from the image.
    """
    ## Algorithm name.
    name: str
    ## RAM available to the algorithm.
    ram_start: int
    ram_size: int
    ## Whether the pack marks the algorithm as loaded by default.
    default: bool = False
    flash_start: Optional[int] = None
    flash_size: Optional[int] = None
    page_size: Optional[int] = None
    sector_size: Optional[int] = None
    ## Names of the processors the algorithm applies to. Empty for all.
    processors: Tuple[str, ...] = ()

@dataclass(frozen=True)
class EntryPoints:
    """@brief Entry point offsets from the algorithm load address. Absent entries are None."""
    init: int
    uninit: int
    erase_sector: int
    program_page: int
    erase_chip: Optional[int] = None
    verify: Optional[int] = None
    blank_check: Optional[int] = None

## Map from image symbol name to EntryPoints field.
ENTRY_POINT_SYMBOLS = {
    "Init": "init",
    "UnInit": "uninit",
    "EraseSector": "erase_sector",
    "ProgramPage": "program_page",
    "EraseChip": "erase_chip",
    "Verify": "verify",
    "BlankCheck": "blank_check",
    }

@dataclass(frozen=True)
class FlashAlgorithm:
    """@brief A flash algorithm relocated into a device's RAM.

    Memory layout:
    ```
    [<--stack] [buf2] [buf1] [hdr][code+data]
    ^ ram start                             ^ ram end
    ```

    The optional header holds a breakpoint instruction. The stack pointer is the lowest page buffer
    address, and the stack grows down towards the start of RAM.
    """

    ## @brief Standard flash blob header with a breakpoint instruction.
    #
    # This header consists of two instructions:
    #
    # ```
    # bkpt  #0
    # b     .-2     # branch to the bkpt
    # ```
    #
    # Before running a flash algo operation, LR is set to the address of the `bkpt` instruction,
    # so when the operation function returns it will halt the CPU.
    BLOB_HEADER = 0xE7FDBE00
    ## @brief Size of the flash blob header in bytes.
    BLOB_HEADER_SIZE = 4

    ## Alignment for page buffers.
    PAGE_BUFFER_ALIGN = 16

    name: str
    description: str
    default: bool
    ## Header plus blob, padded to a multiple of 4 bytes.
    instructions: bytes
    load_address: int
    entry_points: EntryPoints
    ## Offset of the algorithm's writable data from the load address.
    data_section_offset: int
    stack_pointer: int
    stack_size: int
    page_buffers: Tuple[int, ...]
    ram_start: int
    ram_size: int
    flash_start: int
    flash_size: int
    page_size: int
    sector_size: int
    sectors: Tuple[SectorInfo, ...]
    erased_byte_value: int = 0xff
    program_timeout: Optional[int] = None
    erase_timeout: Optional[int] = None
    big_endian: bool = False
    ## Size of the breakpoint header at the start of the instructions.
    header_size: int = 0
    processors: Tuple[str, ...] = field(default=())

    @property
    def buffer_size(self) -> int:
        """@brief Size of each page buffer in bytes."""
        return self.page_size

    @property
    def code_start(self) -> int:
        """@brief Address of the first byte of the blob, after any header."""
        return self.load_address + self.header_size

    @property
    def flash_range(self) -> MemoryRange:
        return MemoryRange(self.flash_start, length=self.flash_size)

    def pc(self, entry: str) -> Optional[int]:
        """@brief Absolute address of an entry point, by EntryPoints field name."""
        offset = getattr(self.entry_points, entry)
        if offset is None:
            return None
        return self.load_address + offset

    def iter_sector_ranges(self) -> Iterator[Tuple[MemoryRange, int]]:
        """@brief Iterator yielding a memory range and sector size for each run of sectors."""
        for j, (start, sector_size) in enumerate(self.sectors):
            # For the last range, the end is the end of the flash. Otherwise it's the start of the
            # next range - 1.
            if j + 1 >= len(self.sectors):
                end = self.flash_start + self.flash_size - 1
            else:
                end = self.sectors[j + 1].address - 1

            # Skip wrong start and end addresses
            if end < start:
                continue

            yield MemoryRange(start, end), sector_size

    def sectors_for_range(self, range: MemoryRange) -> Tuple[SectorInfo, ...]:
        """@brief Return the sector table clipped to the given address range.

        The algorithm may describe a larger flash than the pack declares for a region, or the
        reverse, so only the overlapping part of each run of sectors is kept.
        """
        result = []
        for sector_range, sector_size in self.iter_sector_ranges():
            if not sector_range.intersects_range(range=range):
                continue
            result.append(SectorInfo(max(range.start, sector_range.start), sector_size))
        return tuple(result)

    @classmethod
    def from_image(
                cls,
                image: FlashAlgoImage,
                metadata: AlgorithmMetadata,
                blob_header: bool = True,
                min_stack_size: int = 512,
            ) -> "FlashAlgorithm":
        """@brief Bind a parsed image to device metadata and allocate its RAM.

        The most interesting operation this method performs is dynamically allocating memory
        for the flash algo from the RAM range in the metadata. The algorithm's data and bss are
        part of the blob, so there isn't a specific allocation for them.

        Double buffering is used as long as there is enough RAM left for a stack of at least
        `min_stack_size` bytes.

        @exception UnsupportedAlgorithmLayout The image and metadata together don't describe a
            usable algorithm, or the algorithm does not fit in RAM.
        """
        info = image.flash_info

        # Flash range.
        flash_start = metadata.flash_start if metadata.flash_start is not None else (info.start if info else None)
        flash_size = metadata.flash_size if metadata.flash_size is not None else (info.size if info else None)
        if flash_start is None or not flash_size:
            raise exceptions.UnsupportedAlgorithmLayout("no flash address range for algorithm %s" % metadata.name)

        # Sector table, with offsets rebased onto the flash start.
        if metadata.sector_size:
            sectors: Tuple[SectorInfo, ...] = (SectorInfo(flash_start, metadata.sector_size),)
        elif info is not None and info.sector_info_list:
            sectors = tuple(SectorInfo(flash_start + offset, size)
                    for offset, size in sorted(info.sector_info_list))
        else:
            raise exceptions.UnsupportedAlgorithmLayout("no sector layout for algorithm %s" % metadata.name)
        if any(s.size == 0 for s in sectors):
            raise exceptions.UnsupportedAlgorithmLayout("algorithm %s has a zero sector size" % metadata.name)
        sector_size = max(s.size for s in sectors)

        # Get the page size. If it's unreasonably small, then use the smallest sector size.
        page_size = metadata.page_size or (info.page_size if info else 0)
        if not page_size:
            raise exceptions.UnsupportedAlgorithmLayout("no page size for algorithm %s" % metadata.name)
        if page_size <= 32:
            page_size = min(s.size for s in sectors)
        if page_size > sector_size:
            LOG.warning("Page size (%d) of flash algorithm %s is larger than its sector size (%d)",
                    page_size, metadata.name, sector_size)

        # Build the instructions.
        byteorder = "little" if image.is_little_endian else "big"
        header = b""
        if blob_header and image.is_arm:
            header = cls.BLOB_HEADER.to_bytes(cls.BLOB_HEADER_SIZE, byteorder)
        blob = image.blob + bytes(align_up(len(image.blob), 4) - len(image.blob))
        instructions = header + blob

        ram_start = metadata.ram_start
        ram_size = metadata.ram_size

        # Start at end of RAM and work backwards.
        addr = ram_start + ram_size

        # Load address
        addr = align_down(addr - len(instructions), 4)
        addr_load = addr

        # Data buffer 1
        addr = align_down(addr - page_size, cls.PAGE_BUFFER_ALIGN)
        addr_data = addr

        if addr_data < ram_start:
            raise exceptions.UnsupportedAlgorithmLayout(
                    "not enough memory space to fit flash algorithm %s (%d bytes of RAM at %#010x)"
                    % (metadata.name, ram_size, ram_start))

        # Data buffer 2
        addr_data2 = align_down(addr - page_size, cls.PAGE_BUFFER_ALIGN)

        # Stack
        # Select best fit for one or two data buffers and a variable size stack.
        stack_size_two_bufs = addr_data2 - ram_start
        if stack_size_two_bufs < min_stack_size:
            # One buffer
            stack_size = addr_data - ram_start
            addr_stack = addr_data
            page_buffers: Tuple[int, ...] = (addr_data,)
            if stack_size < min_stack_size:
                LOG.warning("flash algorithm %s has only %d bytes of stack", metadata.name, stack_size)
        else:
            stack_size = stack_size_two_bufs
            addr_stack = addr_data2
            page_buffers = (addr_data, addr_data2)

        LOG.debug("flash algo %s: [stack=%#x; %#x b] [bufs=%s] [code=%#x,+%#x,%#x b] (ram=%#010x, %#x b)",
            metadata.name, addr_stack, stack_size,
            ", ".join("%#x" % b for b in page_buffers),
            addr_load, addr_load - ram_start, len(instructions),
            ram_start, ram_size)

        # Entry points are offsets from the load address, header included.
        offsets = {
            ENTRY_POINT_SYMBOLS[sym]: (None if value is None else len(header) + value)
            for sym, value in image.symbols.items()
            }

        return cls(
            name=metadata.name,
            description=info.name if info else "",
            default=metadata.default,
            instructions=instructions,
            load_address=addr_load,
            entry_points=EntryPoints(**offsets),
            data_section_offset=len(header) + image.data_section_offset,
            stack_pointer=addr_stack,
            stack_size=stack_size,
            page_buffers=page_buffers,
            ram_start=ram_start,
            ram_size=ram_size,
            flash_start=flash_start,
            flash_size=flash_size,
            page_size=page_size,
            sector_size=sector_size,
            sectors=sectors,
            erased_byte_value=info.value_empty if info else 0xff,
            program_timeout=info.prog_timeout_ms if info else None,
            erase_timeout=info.erase_timeout_ms if info else None,
            big_endian=not image.is_little_endian,
            header_size=len(header),
            processors=metadata.processors,
            )

def extract(
            data: bytes,
            metadata: AlgorithmMetadata,
            segment_policy: str = "largest",
            blob_header: bool = True,
            min_stack_size: int = 512,
            max_segment_size: int = DEFAULT_MAX_SEGMENT_SIZE,
        ) -> FlashAlgorithm:
    """@brief Extract a flash algorithm from the raw bytes of an image.

    Shorthand for parsing a FlashAlgoImage and binding it with FlashAlgorithm.from_image().
    """
    image = FlashAlgoImage(data, segment_policy=segment_policy, max_segment_size=max_segment_size)
    return FlashAlgorithm.from_image(image, metadata, blob_header=blob_header, min_stack_size=min_stack_size)
