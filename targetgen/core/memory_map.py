# targetgen
# Copyright (c) 2015-2019 Arm Limited
# Copyright (c) 2021-2022 Chris Reed
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

from enum import Enum
import collections.abc
from functools import total_ordering
from typing import (Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple,
        Type, Union)
from typing_extensions import Self

from ..utility.strings import uniquify_name

class MemoryType(Enum):
    """@brief Known types of memory."""
    OTHER = 0
    RAM = 1
    ROM = 2
    FLASH = 3
    DEVICE = 4

class SectorInfo(NamedTuple):
    """@brief One run of equally sized erase sectors starting at an absolute address."""
    address: int
    size: int

def check_range(
            start: Union[int, "MemoryRangeBase", None] = None,
            end: Optional[int] = None,
            length: Optional[int] = None,
            range: Optional["MemoryRangeBase"] = None
        ) -> Tuple[int, int]:
    assert ((range is not None)
        or ((start is not None) and (isinstance(start, MemoryRangeBase)
            or ((end is not None) ^ (length is not None)))))
    if isinstance(start, MemoryRangeBase):
        range = start
    if range is not None:
        actual_start = range.start
        actual_end = range.end
    else:
        assert isinstance(start, int)
        actual_start = start
        if end is None:
            assert length is not None
            actual_end = actual_start + length - 1
        else:
            actual_end = end
    return actual_start, actual_end

@total_ordering
class MemoryRangeBase:
    """@brief Base class for a range of memory.

    This base class provides the basic address range support and methods to test for containment
    or intersection with another range. The end address is inclusive.
    """
    def __init__(self, start: int = 0, end: int = 0, length: Optional[int] = None) -> None:
        self._start = start
        if length is not None:
            self._end = self._start + length - 1
        else:
            self._end = end
        assert self._end >= (self._start - 1)

    @property
    def start(self) -> int:
        return self._start

    @property
    def end(self) -> int:
        return self._end

    @property
    def length(self) -> int:
        return self._end - self._start + 1

    @property
    def is_empty(self) -> bool:
        """@brief Whether the range has a zero size."""
        return self.length == 0

    def contains_address(self, address: int) -> bool:
        return (address >= self.start) and (address <= self.end)

    def contains_range(
                self,
                start: Union[int, "MemoryRangeBase", None] = None,
                end: Optional[int] = None,
                length: Optional[int] = None,
                range: Optional["MemoryRangeBase"] = None
            ) -> bool:
        """@return Whether the given range is fully contained by the region."""
        start, end = check_range(start, end, length, range)
        return self.contains_address(start) and self.contains_address(end)

    def intersects_range(
                self,
                start: Union[int, "MemoryRangeBase", None] = None,
                end: Optional[int] = None,
                length: Optional[int] = None,
                range: Optional["MemoryRangeBase"] = None
            ) -> bool:
        """@return Whether the region and the given range intersect at any point."""
        start, end = check_range(start, end, length, range)
        return (start <= self.end) and (end >= self.start)

    def __hash__(self) -> int:
        return hash("%08x%08x%08x" % (self.start, self.end, self.length))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MemoryRangeBase):
            return NotImplemented
        return self.start == other.start and self.length == other.length

    def __lt__(self, other: "MemoryRangeBase") -> bool:
        return (self.start, self.length) < (other.start, other.length)

class MemoryRange(MemoryRangeBase):
    """@brief A plain range of memory."""

    def __repr__(self) -> str:
        return "<%s@0x%x start=0x%x end=0x%x length=0x%x>" % (self.__class__.__name__,
            id(self), self.start, self.end, self.length)

class MemoryRegion(MemoryRangeBase):
    """@brief One contiguous range of memory.

    Memory regions have attributes accessible via the normal dot syntax.

    - `name`: Name of the region, which defaults to the region type in lowercase.
    - `access`: Composition of r, w, x, p (peripheral).
    - `alias`: If set, the name of another region of which this region is an alias.
    - `is_boot_memory`: Whether the device boots from this memory.
    - `is_default`: Whether the region needs no special provisions for access and should be used as a
        default of the given type.
    - `is_uninit`: Whether the memory must not be initialised by startup code.
    - `processors`: Tuple of processor names the region is visible to. Empty means all processors.

    Several attributes are available whose values are computed from other attributes. These should
    not be set when creating the region.
    - `is_ram`
    - `is_rom`
    - `is_flash`
    - `is_device`
    - `is_readable`
    - `is_writable`
    - `is_executable`
    """

    ## Default attribute values for all memory region types.
    DEFAULT_ATTRS: Dict[str, Any] = {
        'name': lambda r: r.type.name.lower(),
        'access': 'rwx',
        'alias': None,
        'is_boot_memory': False,
        'is_default': True,
        'is_uninit': False,
        'processors': (),
        'is_ram': lambda r: r.type is MemoryType.RAM,
        'is_rom': lambda r: r.type is MemoryType.ROM,
        'is_flash': lambda r: r.type is MemoryType.FLASH,
        'is_device': lambda r: r.type is MemoryType.DEVICE,
        'is_readable': lambda r: 'r' in r.access,
        'is_writable': lambda r: 'w' in r.access,
        'is_executable': lambda r: 'x' in r.access,
        }

    def __init__(
                self,
                type: MemoryType = MemoryType.OTHER,
                start: int = 0,
                end: int = 0,
                length: Optional[int] = None,
                **attrs: Any
            ) -> None:
        """Memory region constructor.

        Memory regions are required to have non-zero lengths, unlike memory ranges.
        """
        super().__init__(start=start, end=end, length=length)
        assert self.length > 0, "Memory regions must have a non-zero length."
        assert isinstance(type, MemoryType)
        self._type = type
        self._attributes = attrs

        # Assign default values to any attributes missing from kw args.
        for k, v in self.DEFAULT_ATTRS.items():
            if k not in self._attributes:
                self._attributes[k] = v

    @property
    def type(self) -> MemoryType:
        return self._type

    @property
    def attributes(self) -> Dict[str, Any]:
        return self._attributes

    def __getattr__(self, name: str) -> Any:
        try:
            v = self._attributes[name]
        except KeyError:
            # Transform the KeyError from a missing attribute to the expected AttributeError.
            raise AttributeError(name)
        else:
            if callable(v):
                v = v(self)
            return v

    def __setattr__(self, name: str, value: Any) -> None:
        """@brief Set an instance attribute.

        Overridden to handle region attributes contained in the ._attributes dict.
        """
        try:
            attrs = super().__getattribute__('_attributes')
        except AttributeError:
            return super().__setattr__(name, value)

        if name in attrs:
            attrs[name] = value
        else:
            return super().__setattr__(name, value)

    def _get_attributes_for_clone(self) -> Dict[str, Any]:
        """@brief Return a dict containing all the attributes of this region.

        This method must be overridden by subclasses to include in the returned dict any instance attributes
        not present in the `_attributes` attribute.
        """
        return dict(start=self.start, length=self.length, **self._attributes)

    def clone_with_changes(self, **modified_attrs: Any) -> Self:
        """@brief Create a duplicate this region with some of its attributes modified."""
        new_attrs = self._get_attributes_for_clone()
        if ('end' in modified_attrs) and ('length' not in modified_attrs):
            del new_attrs['length']
        new_attrs.update(modified_attrs)
        if self.__class__ is MemoryRegion:
            new_attrs.setdefault('type', self._type)

        return self.__class__(**new_attrs)

    def __copy__(self) -> Any:
        return self.clone_with_changes()

    # Need to redefine __hash__ since we redefine __eq__.
    __hash__ = MemoryRangeBase.__hash__

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MemoryRegion):
            return NotImplemented
        # Include type and attributes in equality comparison.
        return self.start == other.start and self.length == other.length \
            and self.type == other.type and self.attributes == other.attributes

    def __repr__(self) -> str:
        return "<%s@0x%x name=%s type=%s start=0x%x end=0x%x length=0x%x access=%s>" % (self.__class__.__name__, id(self), self.name, self.type, self.start, self.end, self.length, self.access)

class RamRegion(MemoryRegion):
    """@brief Contiguous region of RAM."""
    def __init__(
                self,
                start: int = 0,
                end: int = 0,
                length: Optional[int] = None,
                **attrs: Any
            ) -> None:
        attrs['type'] = MemoryType.RAM
        super().__init__(start=start, end=end, length=length, **attrs)

class RomRegion(MemoryRegion):
    """@brief Contiguous region of ROM."""

    # Default attribute values for ROM regions.
    DEFAULT_ATTRS = MemoryRegion.DEFAULT_ATTRS.copy()
    DEFAULT_ATTRS.update({
        'access': 'rx', # ROM is by definition not writable.
        })

    def __init__(
                self,
                start: int = 0,
                end: int = 0,
                length: Optional[int] = None,
                **attrs: Any
            ) -> None:
        attrs['type'] = MemoryType.ROM
        super().__init__(start=start, end=end, length=length, **attrs)

class FlashRegion(MemoryRegion):
    """@brief Contiguous region of flash memory.

    Flash regions have a number of attributes in addition to those available in all region types.
    - `algorithm`: Name of the flash algorithm that programs this region, or None if the region is
        declarative only and cannot be programmed.
    - `sectors`: Tuple of SectorInfo objects describing the erase sector layout. Each entry applies
        from its address up to the next entry's address or the end of the region.
    - `sector_size`: Largest erase sector size in bytes, or 0 if unknown.
    - `page_size`: Program page size in bytes, or 0 if unknown.
    - `erased_byte_value`: The value of an erased byte of this flash.
    """

    # Add some default attribute values for flash regions.
    DEFAULT_ATTRS = MemoryRegion.DEFAULT_ATTRS.copy()
    DEFAULT_ATTRS.update({
        'algorithm': None,
        'sectors': (),
        'sector_size': lambda r: max((s.size for s in r.sectors), default=0),
        'page_size': 0,
        'erased_byte_value': 0xff,
        'access': 'rx', # By default flash is not writable.
        })

    def __init__(
                self,
                start: int = 0,
                end: int = 0,
                length: Optional[int] = None,
                **attrs: Any
            ) -> None:
        attrs['type'] = MemoryType.FLASH
        if 'sectors' in attrs:
            attrs['sectors'] = tuple(SectorInfo(*s) for s in attrs['sectors'])
        super().__init__(start=start, end=end, length=length, **attrs)

    @property
    def is_programmable(self) -> bool:
        """@brief Whether a flash algorithm is associated with the region."""
        return self.algorithm is not None

    def __repr__(self) -> str:
        return "<%s@0x%x name=%s type=%s start=0x%x end=0x%x length=0x%x access=%s algorithm=%s>" % (
                self.__class__.__name__, id(self), self.name, self.type, self.start, self.end,
                self.length, self.access, self.algorithm)

class DeviceRegion(MemoryRegion):
    """@brief Device or peripheral memory."""

    # Default attribute values for device regions.
    DEFAULT_ATTRS = MemoryRegion.DEFAULT_ATTRS.copy()
    DEFAULT_ATTRS.update({
        'access': 'rw', # By default device regions are not executable.
        })

    def __init__(
                self,
                start: int = 0,
                end: int = 0,
                length: Optional[int] = None,
                **attrs: Any
            ) -> None:
        attrs['type'] = MemoryType.DEVICE
        super().__init__(start=start, end=end, length=length, **attrs)

## @brief Map from memory type to class.
MEMORY_TYPE_CLASS_MAP: Dict[MemoryType, Type[MemoryRegion]] = {
        MemoryType.OTHER:   MemoryRegion,
        MemoryType.RAM:     RamRegion,
        MemoryType.ROM:     RomRegion,
        MemoryType.FLASH:   FlashRegion,
        MemoryType.DEVICE:  DeviceRegion,
    }

class MemoryMap(MemoryRangeBase, collections.abc.Sequence):
    """@brief Memory map consisting of memory regions.

    The normal way to create a memory map is to instantiate regions directly in the call to the
    constructor.

    @code
    map = MemoryMap(
                FlashRegion(    start=0,
                                length=0x4000,
                                sectors=[(0, 0x400)],
                                is_boot_memory=True,
                                algorithm="acme_flash"),

                RamRegion(      start=0x10000000,
                                length=0x1000)
                )
    @endcode

    Regardless of the order regions are added, the list of regions contained in the memory map is
    always maintained sorted by start address. Region names are kept unique within a map.

    MemoryMap objects implement the collections.abc.Sequence interface.
    """

    _regions: List[MemoryRegion]

    def __init__(
            self,
            *more_regions: Union[Sequence[MemoryRegion], MemoryRegion],
            **kwargs: Any,
            ) -> None:
        """@brief Constructor.

        All parameters passed to the constructor are assumed to be MemoryRegion instances, and
        are passed to add_regions(). The resulting memory map is sorted by region start address.

        Keyword arguments:
        - `start`
        - `end`
        - `length`
        """
        MemoryRangeBase.__init__(
            self,
            start=kwargs.get('start', 0),
            end=kwargs.get('end', 0xffffffffffffffff),
            length=kwargs.get('length')
        )
        self._regions = []
        self.add_regions(*more_regions)

    @property
    def regions(self) -> List[MemoryRegion]:
        """@brief List of all memory regions, sorted by start address."""
        return self._regions

    @property
    def is_empty(self) -> bool:
        """@brief Whether the map has zero regions."""
        return len(self._regions) == 0

    def add_regions(self, *more_regions: Union[Sequence[MemoryRegion], MemoryRegion]) -> None:
        """@brief Add multiple regions to the memory map.

        Regions can be passed either as separate parameters or as a single list or tuple of regions.
        """
        if len(more_regions):
            if isinstance(more_regions[0], collections.abc.Sequence):
                regions_to_add = more_regions[0]
            else:
                regions_to_add = more_regions

            for new_region in regions_to_add:
                assert isinstance(new_region, MemoryRegion)
                self.add_region(new_region)

    def add_region(self, new_region: MemoryRegion) -> None:
        """@brief Add one new region to the map.

        @param self
        @param new_region An instance of MemoryRegion to add. A new instance that is a copy of this argument
            may be added to the memory map in order to guarantee unique region names. The region must
            fall completely within the map's address bounds.

        @exception ValueError The region is out of bounds.
        """
        existing_names = [r.name for r in self._regions]
        if new_region.name in existing_names:
            new_region = new_region.clone_with_changes(name=uniquify_name(new_region.name, existing_names))

        if not self.contains_range(new_region):
            raise ValueError(f"attempt add region {new_region} failed because it is out of bounds")

        self._regions.append(new_region)
        self._regions.sort()

    def get_boot_memory(self) -> Optional[MemoryRegion]:
        """@brief Returns the first region marked as boot memory, or None."""
        for r in self._regions:
            if r.is_boot_memory:
                return r
        return None

    def get_region_for_address(self, address: int) -> Optional[MemoryRegion]:
        """@brief Returns the first region containing the given address, or None."""
        for r in self._regions:
            if r.contains_address(address):
                return r
        return None

    def iter_matching_regions(self, **kwargs: Any) -> Iterator[MemoryRegion]:
        """@brief Iterate over regions matching given criteria.

        Useful attributes to match on include 'type', 'name', 'is_default', and others.
        """
        for r in self._regions:
            mismatch = False
            for k, v in kwargs.items():
                try:
                    if getattr(r, k) != v:
                        mismatch = True
                        break
                except AttributeError:
                    # Don't match regions without the specified attribute.
                    mismatch = True
            if mismatch:
                continue

            yield r

    def get_first_matching_region(self, **kwargs: Any) -> Optional[MemoryRegion]:
        """@brief Get the region with the lowest start address that matches the criteria, or None."""
        for r in self.iter_matching_regions(**kwargs):
            return r
        return None

    def get_default_region_of_type(self, type: MemoryType) -> Optional[MemoryRegion]:
        """@brief Get the default region of a given memory type.

        If there are multiple regions of the specified type marked as default, then the one with
        the lowest start address will be returned. None is returned if there are no default regions
        of the type.
        """
        return self.get_first_matching_region(type=type, is_default=True)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MemoryMap) and (self._regions == other._regions)

    __hash__ = None # type: ignore

    def __iter__(self) -> Iterator[MemoryRegion]:
        return iter(self._regions)

    def __getitem__(self, key: Union[int, str]) -> MemoryRegion: # type: ignore[override]
        """@brief Return a region indexed by name or number."""
        if isinstance(key, str):
            result = self.get_first_matching_region(name=key)
            if result is None:
                raise IndexError(key)
            return result
        else:
            return self._regions[key]

    def __len__(self) -> int:
        return len(self._regions)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, int):
            return self.get_region_for_address(key) is not None
        elif isinstance(key, str):
            return self.get_first_matching_region(name=key) is not None
        else:
            return key in self._regions

    def __repr__(self) -> str:
        return "<MemoryMap@0x%08x regions=%s>" % (id(self), repr(self._regions))
