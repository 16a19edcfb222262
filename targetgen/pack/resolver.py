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

from dataclasses import (dataclass, field, replace)
import logging
from typing import (Dict, List, NamedTuple, Optional, Sequence, Tuple)

from intervaltree import IntervalTree

from ..core.exceptions import (Error, NoCoreDefined, UnresolvableRegionOverlap)
from ..core.memory_map import (MemoryMap, MemoryRange, MemoryType, MEMORY_TYPE_CLASS_MAP)
from ..utility.strings import (algorithm_name_from_path, uniquify_name)
from ..utility.mask import parse_int
from .family_tree import (AlgorithmRef, FamilyNode, MemoryDecl, NodeKind, ProcessorDecl)

LOG = logging.getLogger(__name__)

## Map from Dcore prefix to core type. Longer prefixes are checked first.
CORE_TYPE_MAP: Dict[str, str] = {
    "Cortex-M0": "armv6m",
    "Cortex-M0+": "armv6m",
    "Cortex-M1": "armv6m",
    "SC000": "armv6m",
    "Cortex-M3": "armv7m",
    "SC300": "armv7m",
    "Cortex-M4": "armv7em",
    "Cortex-M7": "armv7em",
    "Cortex-M23": "armv8m",
    "Cortex-M33": "armv8m",
    "Cortex-M35P": "armv8m",
    "Cortex-M52": "armv8m",
    "Cortex-M55": "armv8m",
    "Cortex-M85": "armv8m",
    "Star-MC1": "armv8m",
    "ARMV8MBL": "armv8m",
    "ARMV8MML": "armv8m",
    "ARMV81MML": "armv8m",
    "Cortex-R4": "armv7r",
    "Cortex-R5": "armv7r",
    "Cortex-R7": "armv7r",
    "Cortex-R8": "armv7r",
    "Cortex-A5": "armv7a",
    "Cortex-A7": "armv7a",
    "Cortex-A8": "armv7a",
    "Cortex-A9": "armv7a",
    "Cortex-A15": "armv7a",
    "Cortex-A17": "armv7a",
    "Cortex-A32": "armv8a",
    "Cortex-A35": "armv8a",
    "Cortex-A53": "armv8a",
    "Cortex-A55": "armv8a",
    "Cortex-A57": "armv8a",
    "Cortex-A72": "armv8a",
    "RISC-V": "riscv",
    }

## Core types with a 64-bit address space.
WIDE_CORE_TYPES = {"armv8a"}

def core_type_for_dcore(dcore: str) -> Optional[str]:
    """@brief Map a Dcore attribute value to a core type, or None if it is not known."""
    if dcore in CORE_TYPE_MAP:
        return CORE_TYPE_MAP[dcore]
    if dcore.upper().startswith(("RISC", "RV32", "RV64")):
        return "riscv"
    return None

@dataclass(frozen=True)
class CoreInfo:
    """@brief A resolved processor core."""
    ## The Pname attribute, or Dcore if no Pname was provided.
    name: str
    ## Core architecture, such as "armv7em" or "riscv".
    core_type: str
    dcore: str
    address_width: int = 32
    fpu: Optional[str] = None
    mpu: Optional[str] = None
    endian: Optional[str] = None
    ## Number of processing elements for MPCore clusters.
    units: int = 1

class AlgorithmBinding(NamedTuple):
    """@brief A flash algorithm reference bound to a device under a unique name."""
    name: str
    ref: AlgorithmRef

@dataclass(frozen=True)
class DeviceVariant:
    """@brief A fully resolved device variant.

    Instances are flattened copies that hold no reference to the FamilyTree, so they can be
    processed independently of it.
    """
    name: str
    device: str
    vendor: str
    families: Tuple[str, ...]
    cores: Tuple[CoreInfo, ...]
    memory_map: MemoryMap
    algorithms: Tuple[AlgorithmBinding, ...]
    boot_region: Optional[str] = None
    description: Optional[str] = None
    pack_vendor: Optional[str] = None
    pack_name: Optional[str] = None
    pack_version: Optional[str] = None

    def get_algorithm(self, name: str) -> Optional[AlgorithmRef]:
        for binding in self.algorithms:
            if binding.name == name:
                return binding.ref
        return None

@dataclass
class _Piece:
    """@brief Resolution state for one declared region or a piece of one."""
    decl: MemoryDecl
    depth: int
    type: MemoryType
    access: str
    processors: List[str] = field(default_factory=list)
    algorithm: Optional[str] = None
    ## Set for regions created from an algorithm reference rather than a memory declaration.
    created: bool = False

def _memory_type_and_access(decl: MemoryDecl) -> Tuple[MemoryType, str]:
    if decl.is_legacy_id:
        if 'RAM' in decl.name:
            return MemoryType.RAM, 'rwx'
        else:
            return MemoryType.ROM, 'rx'

    access = decl.access
    if access is None:
        LOG.debug("memory %s has no access attribute; assuming 'rx'", decl.location)
        access = 'rx'
    if 'p' in access:
        return MemoryType.DEVICE, access
    elif 'w' in access:
        return MemoryType.RAM, access
    else:
        return MemoryType.ROM, access

class Resolver:
    """@brief Resolves one device variant from the chain of nodes above it.

    @sa resolve()
    """

    def __init__(self, leaf: FamilyNode) -> None:
        if not leaf.is_leaf_device:
            raise ValueError("%s is not a device variant" % leaf.name)
        self._leaf = leaf
        # Root first.
        self._chain: List[FamilyNode] = list(reversed(list(leaf.ancestors())))

    def resolve(self) -> DeviceVariant:
        cores = self._resolve_processors()
        pieces = self._resolve_regions()
        bindings = self._attach_algorithms(pieces)
        memory_map = self._build_memory_map(pieces)

        boot = memory_map.get_boot_memory()
        tree = self._leaf.tree
        assert tree is not None
        return DeviceVariant(
                name=self._leaf.name,
                device=self._device_name(),
                vendor=self._nearest('vendor') or tree.pack_vendor or "",
                families=tuple(n.name for n in self._chain
                        if n.kind in (NodeKind.FAMILY, NodeKind.SUBFAMILY)),
                cores=cores,
                memory_map=memory_map,
                algorithms=bindings,
                boot_region=boot.name if boot is not None else None,
                description=self._nearest('description'),
                pack_vendor=tree.pack_vendor,
                pack_name=tree.pack_name,
                pack_version=tree.pack_version,
                )

    def _device_name(self) -> str:
        for node in reversed(self._chain):
            if node.kind is NodeKind.DEVICE:
                return node.name
        return self._leaf.name

    def _nearest(self, attr: str) -> Optional[str]:
        for node in reversed(self._chain):
            value = getattr(node, attr)
            if value is not None:
                return value
        return None

    def _resolve_processors(self) -> Tuple[CoreInfo, ...]:
        """@brief The deepest declaration wins; unset attributes come from ancestors by Pname."""
        inherited: Dict[Optional[str], ProcessorDecl] = {}
        declared: Sequence[ProcessorDecl] = ()
        for node in self._chain:
            if not node.processors:
                continue
            # Accumulate what the shallower declarations provide for each Pname.
            for proc in declared:
                inherited[proc.pname] = proc
            declared = [proc.inherit(inherited.get(proc.pname)) for proc in node.processors]

        cores: List[CoreInfo] = []
        for proc in declared:
            dcore = proc.dcore
            if dcore is None:
                raise NoCoreDefined("processor at %s has no 'Dcore' attribute" % proc.location)
            name = proc.pname or dcore
            if any(c.name == name for c in cores):
                LOG.warning("%s: processor element has duplicate name '%s'", self._leaf.name, name)
                continue

            core_type = core_type_for_dcore(dcore)
            if core_type is None:
                LOG.warning("%s: unknown processor core '%s'", self._leaf.name, dcore)
                core_type = "unknown"
            try:
                units = parse_int(proc.attributes.get('Punits', '1'))
            except ValueError:
                LOG.warning("%s: invalid Punits value for processor '%s'", self._leaf.name, name)
                units = 1

            cores.append(CoreInfo(
                    name=name,
                    core_type=core_type,
                    dcore=dcore,
                    address_width=64 if core_type in WIDE_CORE_TYPES else 32,
                    fpu=proc.attributes.get('Dfpu'),
                    mpu=proc.attributes.get('Dmpu'),
                    endian=proc.attributes.get('Dendian'),
                    units=units,
                    ))

        if not cores:
            raise NoCoreDefined("no processor is declared for device %s" % self._leaf.name)
        return tuple(cores)

    def _collect_memories(self) -> List[Tuple[int, MemoryDecl]]:
        """@brief Collect memory declarations from the root down.

        A deeper declaration with the same name and Pname as an outer one replaces it.
        """
        decls: Dict[Tuple[str, Optional[str]], Tuple[int, MemoryDecl]] = {}
        for node in self._chain:
            for decl in node.memories:
                key = (decl.name, decl.pname)
                if key in decls:
                    LOG.debug("%s: memory %s overrides %s", self._leaf.name, decl.location, decls[key][1].location)
                    del decls[key]
                decls[key] = (node.depth, decl)
        # Shallowest first, preserving declaration order within a depth.
        return sorted(decls.values(), key=lambda d: d[0])

    def _resolve_regions(self) -> List[_Piece]:
        """@brief Union the declared regions and resolve overlaps, deepest declaration winning.

        @exception UnresolvableRegionOverlap Two overlapping regions are declared at the same depth.
        """
        tree = IntervalTree()
        for depth, decl in self._collect_memories():
            type, access = _memory_type_and_access(decl)
            begin = decl.start
            end = decl.start + decl.size
            piece = _Piece(decl, depth, type, access, [decl.pname] if decl.pname else [])

            merged = False
            for iv in sorted(tree.overlap(begin, end), key=lambda iv: (iv.begin, iv.end)):
                other: _Piece = iv.data
                if other.depth < depth:
                    continue
                # Same memory viewed from different processors.
                if (iv.begin, iv.end) == (begin, end) and (other.decl.name, other.type) == (decl.name, type) \
                        and decl.pname not in other.processors and other.processors and decl.pname:
                    other.processors.append(decl.pname)
                    merged = True
                    continue
                raise UnresolvableRegionOverlap([other.decl.name, decl.name])
            if merged:
                continue

            # Chop this region's range out of shallower regions.
            for iv in sorted(tree.overlap(begin, end), key=lambda iv: (iv.begin, iv.end)):
                LOG.debug("%s: region %s shadows part of %s", self._leaf.name, decl.name, iv.data.decl.name)
                tree.remove(iv)
                if iv.begin < begin:
                    tree.addi(iv.begin, begin, iv.data)
                if iv.end > end:
                    tree.addi(end, iv.end, replace(iv.data, processors=list(iv.data.processors)))
            tree.addi(begin, end, piece)

        pieces = []
        for iv in sorted(tree, key=lambda iv: iv.begin):
            piece = iv.data
            if (iv.begin, iv.end) != (piece.decl.start, piece.decl.start + piece.decl.size):
                piece = replace(piece, decl=replace(piece.decl, start=iv.begin, size=iv.end - iv.begin))
            pieces.append(piece)
        return pieces

    def _collect_algorithms(self) -> List[AlgorithmRef]:
        """@brief Collect algorithm references. A deeper reference with the same range replaces an outer one."""
        refs: Dict[Tuple[int, int], AlgorithmRef] = {}
        for node in self._chain:
            for ref in node.algorithms:
                refs[(ref.start, ref.size)] = ref
        return list(refs.values())

    def _attach_algorithms(self, pieces: List[_Piece]) -> Tuple[AlgorithmBinding, ...]:
        """@brief Attach algorithm references to the regions they cover.

        ROM regions covered by an algorithm become flash. Default references that cover no region
        create a new flash region from the reference's range.
        """
        refs = self._collect_algorithms()

        # Give each reference a unique name within this device. One image referenced for two
        # flash ranges is bound twice.
        names: Dict[AlgorithmRef, str] = {}
        for ref in refs:
            names[ref] = uniquify_name(algorithm_name_from_path(ref.path), list(names.values()))

        used: List[AlgorithmRef] = []
        for piece in pieces:
            if piece.type not in (MemoryType.ROM, MemoryType.FLASH):
                continue
            piece_range = MemoryRange(piece.decl.start, length=piece.decl.size)
            for ref in refs:
                if not piece_range.intersects_range(ref.start, length=ref.size):
                    continue
                if ref.pname and piece.processors and ref.pname not in piece.processors:
                    continue
                piece.type = MemoryType.FLASH
                piece.algorithm = names[ref]
                if ref not in used:
                    used.append(ref)
                break

        created: List[_Piece] = []
        for ref in refs:
            if ref in used:
                continue
            if not ref.default:
                LOG.debug("%s: not loading non-default flash algorithm '%s'", self._leaf.name, ref.path)
                continue
            clash = next((p for p in pieces
                    if MemoryRange(p.decl.start, length=p.decl.size).intersects_range(ref.start, length=ref.size)),
                    None)
            if clash is not None:
                LOG.warning("%s: flash algorithm '%s' overlaps region %s; ignoring it",
                        self._leaf.name, ref.path, clash.decl.name)
                continue
            for other in created:
                if MemoryRange(other.decl.start, length=other.decl.size).intersects_range(ref.start, length=ref.size):
                    raise UnresolvableRegionOverlap([other.decl.name, names[ref]])
            decl = MemoryDecl(name=names[ref], start=ref.start, size=ref.size, access='rx',
                    pname=ref.pname, location=ref.location)
            created.append(_Piece(decl, -1, MemoryType.FLASH, 'rx',
                    [ref.pname] if ref.pname else [], names[ref], created=True))
            used.append(ref)
        pieces.extend(created)
        pieces.sort(key=lambda p: p.decl.start)

        # Keep the order the references were declared in.
        return tuple(AlgorithmBinding(names[ref], ref) for ref in refs if ref in used)

    def _build_memory_map(self, pieces: List[_Piece]) -> MemoryMap:
        has_startup = any(p.decl.startup for p in pieces)
        boot_assigned = has_startup
        memory_map = MemoryMap()
        for piece in pieces:
            decl = piece.decl
            attrs = {
                    'name': decl.name,
                    'start': decl.start,
                    'length': decl.size,
                    'access': piece.access,
                    # Regions created from an algorithm reference are not declared memories.
                    'is_default': decl.default and not piece.created,
                    'is_boot_memory': decl.startup,
                    'is_uninit': decl.uninit,
                    'alias': decl.alias,
                    'processors': tuple(piece.processors),
                }
            if piece.type is MemoryType.FLASH:
                attrs['algorithm'] = piece.algorithm
                # If we don't have a boot memory, pick the first flash.
                if not boot_assigned:
                    attrs['is_boot_memory'] = True
                    boot_assigned = True
            memory_map.add_region(MEMORY_TYPE_CLASS_MAP[piece.type](**attrs))
        return memory_map

def resolve(leaf: FamilyNode) -> DeviceVariant:
    """@brief Resolve a concrete device variant.

    @exception UnresolvableRegionOverlap
    @exception NoCoreDefined
    """
    try:
        return Resolver(leaf).resolve()
    except Error as err:
        raise err.with_context(device=leaf.name)
