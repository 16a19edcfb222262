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

from dataclasses import dataclass
import logging
from typing import (Mapping, Optional, Tuple)

from ..core.exceptions import MissingAlgorithmForRegion
from ..core.memory_map import (FlashRegion, MemoryRegion, SectorInfo)
from ..flash.flash_algo import FlashAlgorithm
from ..pack.resolver import (CoreInfo, DeviceVariant)

LOG = logging.getLogger(__name__)

@dataclass(frozen=True)
class RegionDescriptor:
    """@brief One memory region in the output schema."""
    ## One of "ram", "rom", "flash", "device", "other".
    kind: str
    name: str
    start: int
    size: int
    read: bool = True
    write: bool = False
    execute: bool = False
    boot: bool = False
    default: bool = False
    uninit: bool = False
    alias: Optional[str] = None
    ## Names of the cores that see this region. Empty means all cores.
    cores: Tuple[str, ...] = ()
    # Flash only.
    algorithm: Optional[str] = None
    sectors: Tuple[SectorInfo, ...] = ()
    page_size: Optional[int] = None
    erased_byte_value: Optional[int] = None

    @property
    def end(self) -> int:
        return self.start + self.size - 1

@dataclass(frozen=True)
class TargetDescriptor:
    """@brief The output unit for one device variant.

    Regions are sorted by start address. Cores are in declaration order and flash algorithms
    are in the order their references were declared.
    """
    name: str
    vendor: str
    device: str
    families: Tuple[str, ...]
    cores: Tuple[CoreInfo, ...]
    memory_map: Tuple[RegionDescriptor, ...]
    flash_algorithms: Tuple[FlashAlgorithm, ...]
    description: Optional[str] = None
    pack_vendor: Optional[str] = None
    pack_name: Optional[str] = None
    pack_version: Optional[str] = None

    @property
    def family(self) -> Optional[str]:
        """@brief The top level family name, if any."""
        return self.families[0] if self.families else None

    def get_region(self, name: str) -> Optional[RegionDescriptor]:
        for region in self.memory_map:
            if region.name == name:
                return region
        return None

    def get_algorithm(self, name: str) -> Optional[FlashAlgorithm]:
        for algo in self.flash_algorithms:
            if algo.name == name:
                return algo
        return None

def _build_region(variant: DeviceVariant, region: MemoryRegion,
        algorithms: Mapping[str, FlashAlgorithm]) -> RegionDescriptor:
    attrs = dict(
            kind=region.type.name.lower(),
            name=region.name,
            start=region.start,
            size=region.length,
            read=region.is_readable,
            write=region.is_writable,
            execute=region.is_executable,
            boot=region.is_boot_memory,
            default=region.is_default,
            uninit=region.is_uninit,
            alias=region.alias,
            cores=tuple(region.processors),
            )
    if isinstance(region, FlashRegion):
        attrs['erased_byte_value'] = region.erased_byte_value
        attrs['sectors'] = region.sectors
        attrs['page_size'] = region.page_size or None
        if region.algorithm is not None:
            algo = algorithms.get(region.algorithm)
            if algo is None:
                raise MissingAlgorithmForRegion(region.name, region.algorithm, device=variant.name)
            attrs['algorithm'] = algo.name
            attrs['sectors'] = algo.sectors_for_range(region)
            attrs['page_size'] = algo.page_size
            attrs['erased_byte_value'] = algo.erased_byte_value
            if not attrs['sectors']:
                LOG.warning("%s: flash algorithm %s does not cover region %s",
                        variant.name, algo.name, region.name)
    return RegionDescriptor(**attrs)

def synthesize(variant: DeviceVariant, algorithms: Mapping[str, FlashAlgorithm]) -> TargetDescriptor:
    """@brief Assemble a target descriptor from a resolved variant and its flash algorithms.

    @param variant The resolved device variant.
    @param algorithms Map from algorithm name, as bound in the variant, to the extracted algorithm.
    @exception MissingAlgorithmForRegion A flash region names an algorithm not present in `algorithms`.
    """
    regions = tuple(_build_region(variant, region, algorithms) for region in variant.memory_map)

    # Only algorithms that programme a region of this variant are embedded.
    referenced = {r.algorithm for r in regions if r.algorithm is not None}
    flash_algorithms = tuple(algorithms[b.name] for b in variant.algorithms
            if b.name in referenced)

    return TargetDescriptor(
            name=variant.name,
            vendor=variant.vendor,
            device=variant.device,
            families=variant.families,
            cores=variant.cores,
            memory_map=regions,
            flash_algorithms=flash_algorithms,
            description=variant.description,
            pack_vendor=variant.pack_vendor,
            pack_name=variant.pack_name,
            pack_version=variant.pack_version,
            )
