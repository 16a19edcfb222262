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

from concurrent.futures import (ThreadPoolExecutor, as_completed)
import copy
from dataclasses import (dataclass, field)
import logging
import os
import re
from typing import (Dict, List, Optional)

from .core import exceptions
from .core.memory_map import MemoryType
from .core.session import Session
from .flash.algo_cache import AlgorithmCache
from .flash.flash_algo import (AlgorithmMetadata, FlashAlgoImage, FlashAlgorithm)
from .pack.archive import PackArchive
from .pack.family_tree import (FamilyNode, parse)
from .pack.resolver import (AlgorithmBinding, DeviceVariant, resolve)
from .target.descriptor import (TargetDescriptor, synthesize)
from .target.serializer import (dump_descriptor, dump_family)

LOG = logging.getLogger(__name__)

@dataclass(frozen=True)
class DeviceOutcome:
    """@brief Result of generating one device variant."""
    name: str
    descriptor: Optional[TargetDescriptor] = None
    error: Optional[exceptions.Error] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def entry(self) -> Optional[str]:
        """@brief Pack entry the failure relates to, if known."""
        return self.error.entry if self.error is not None else None

@dataclass
class GenerationResult:
    """@brief Per-device outcomes for one pack, sorted by variant name."""
    pack_name: Optional[str]
    outcomes: List[DeviceOutcome] = field(default_factory=list)

    @property
    def descriptors(self) -> List[TargetDescriptor]:
        return [o.descriptor for o in self.outcomes if o.descriptor is not None]

    @property
    def failures(self) -> List[DeviceOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def get(self, name: str) -> Optional[DeviceOutcome]:
        for outcome in self.outcomes:
            if outcome.name == name:
                return outcome
        return None

class ReportSink:
    """@brief Receives per-device events as they happen."""

    def device_succeeded(self, pack_name: Optional[str], outcome: DeviceOutcome) -> None:
        pass

    def device_failed(self, pack_name: Optional[str], outcome: DeviceOutcome) -> None:
        pass

class LoggingReportSink(ReportSink):
    """@brief Report sink that writes events to the log."""

    def __init__(self, log_tracebacks: bool = False) -> None:
        self._log_tracebacks = log_tracebacks

    def device_succeeded(self, pack_name: Optional[str], outcome: DeviceOutcome) -> None:
        LOG.info("%s: generated %s", pack_name, outcome.name)

    def device_failed(self, pack_name: Optional[str], outcome: DeviceOutcome) -> None:
        LOG.error("%s: failed to generate %s: %s", pack_name, outcome.name, outcome.error,
                exc_info=outcome.error if self._log_tracebacks else None)

class PackGenerator:
    """@brief Drives generation of target descriptors for the devices of a pack.

    The family description is parsed first; errors there abort the pack. Each device variant is then
    resolved, its flash algorithms are extracted, and the descriptor is synthesized, on a pool of
    worker threads. An error for one variant is recorded in its outcome and never affects other
    variants. Algorithm images are parsed once per run and shared through an AlgorithmCache.
    """

    def __init__(self, session: Optional[Session] = None, sink: Optional[ReportSink] = None,
            cache: Optional[AlgorithmCache] = None) -> None:
        self._session = session or Session(no_config=True)
        self._sink = sink or LoggingReportSink(self._session.log_tracebacks)
        self._cache = cache or AlgorithmCache()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def cache(self) -> AlgorithmCache:
        return self._cache

    def generate(self, archive: PackArchive) -> GenerationResult:
        """@brief Generate descriptors for every device variant in a pack.

        @exception DescriptorError The family description is malformed. No devices are generated.
        @exception ArchiveError The pack cannot be read.
        """
        try:
            tree = parse(archive.pdsc_bytes)
        except exceptions.Error as err:
            raise err.with_context(entry=archive.pdsc_name)

        variants = list(tree.iter_variants())
        result = GenerationResult(pack_name=tree.pack_name)
        if not variants:
            LOG.warning("%s: pack defines no devices", tree.pack_name)
            return result

        jobs = self._session.options.get('jobs') or os.cpu_count() or 1
        LOG.debug("%s: generating %d devices with %d jobs", tree.pack_name, len(variants), jobs)

        with ThreadPoolExecutor(max_workers=min(jobs, len(variants))) as executor:
            futures = {executor.submit(self._generate_variant, archive, node): node for node in variants}
            for future in as_completed(futures):
                outcome = future.result()
                if outcome.succeeded:
                    self._sink.device_succeeded(tree.pack_name, outcome)
                else:
                    self._sink.device_failed(tree.pack_name, outcome)
                result.outcomes.append(outcome)

        result.outcomes.sort(key=lambda o: o.name)
        return result

    def _generate_variant(self, archive: PackArchive, node: FamilyNode) -> DeviceOutcome:
        try:
            variant = resolve(node)
            algorithms: Dict[str, FlashAlgorithm] = {}
            for binding in variant.algorithms:
                algorithms[binding.name] = self.get_algorithm(archive, variant, binding)
            descriptor = synthesize(variant, algorithms)
            return DeviceOutcome(node.name, descriptor=descriptor)
        except exceptions.Error as err:
            # The same exception object may be shared by devices through the algorithm cache.
            error = copy.copy(err).with_context(device=node.name)
            return DeviceOutcome(node.name, error=error)

    def get_algorithm(self, archive: PackArchive, variant: DeviceVariant,
            binding: AlgorithmBinding) -> FlashAlgorithm:
        """@brief Return the flash algorithm for a reference, bound to the variant's RAM."""
        entry = archive.resolve_reference(binding.ref.path)
        options = self._session.options

        def load() -> FlashAlgoImage:
            try:
                data = archive.read_entry(entry)
                return FlashAlgoImage(data, segment_policy=options.get('algo.segment_policy'),
                        max_segment_size=options.get('algo.max_segment_size'))
            except exceptions.Error as err:
                raise err.with_context(entry=entry)

        image = self._cache.get((archive.identity, entry), load)
        try:
            return FlashAlgorithm.from_image(image, self.algorithm_metadata(variant, binding),
                    blob_header=options.get('algo.blob_header'),
                    min_stack_size=options.get('algo.min_stack_size'))
        except exceptions.Error as err:
            raise err.with_context(entry=entry)

    def algorithm_metadata(self, variant: DeviceVariant, binding: AlgorithmBinding) -> AlgorithmMetadata:
        """@brief Build the pack metadata for a flash algorithm of a device.

        The RAM for the algorithm comes from the reference's RAMstart and RAMsize. When RAMsize is
        missing, the rest of the RAM region containing RAMstart is used, or the `algo.default_ram_size`
        option if RAMstart is not in a known region. Without RAMstart the device's default RAM is used.

        @exception UnsupportedAlgorithmLayout The device has no RAM for the algorithm.
        """
        ref = binding.ref
        memory_map = variant.memory_map
        if ref.ram_start is not None:
            ram_start = ref.ram_start
            if ref.ram_size is not None:
                ram_size = ref.ram_size
            else:
                LOG.warning("%s: flash algorithm '%s' has RAMstart but is missing RAMsize",
                        variant.name, ref.path)
                containing_region = memory_map.get_region_for_address(ram_start)
                if containing_region is not None:
                    ram_size = containing_region.length - (ram_start - containing_region.start)
                else:
                    ram_size = self._session.options.get('algo.default_ram_size')
        else:
            ram = memory_map.get_default_region_of_type(MemoryType.RAM)
            if ram is None:
                ram = memory_map.get_first_matching_region(type=MemoryType.RAM)
                if ram is not None:
                    LOG.debug("%s: no default RAM; using %s for flash algorithms", variant.name, ram.name)
            if ram is None:
                raise exceptions.UnsupportedAlgorithmLayout(
                        "device has no RAM region for flash algorithm '%s'" % binding.name)
            ram_start = ram.start
            ram_size = ram.length

        return AlgorithmMetadata(
                name=binding.name,
                ram_start=ram_start,
                ram_size=ram_size,
                default=ref.default,
                flash_start=ref.start,
                flash_size=ref.size,
                page_size=self._session.options.get('algo.page_size'),
                sector_size=self._session.options.get('algo.sector_size'),
                processors=(ref.pname,) if ref.pname else (),
                )

_UNSAFE_FILENAME_RE = re.compile(r'[^A-Za-z0-9._+-]')

def _filename_for(name: str) -> str:
    return _UNSAFE_FILENAME_RE.sub('_', name) + ".yaml"

class DescriptorWriter:
    """@brief Writes generated descriptors as YAML files into an output directory.

    One file is written per device variant, or one per family if `group_by_family` is set.
    """

    def __init__(self, output_dir: str, group_by_family: bool = False) -> None:
        self._output_dir = output_dir
        self._group_by_family = group_by_family

    def write(self, result: GenerationResult) -> List[str]:
        """@brief Write the descriptors of all successful devices.
        @return List of paths written.
        """
        os.makedirs(self._output_dir, exist_ok=True)
        written = []
        if self._group_by_family:
            groups: Dict[str, List[TargetDescriptor]] = {}
            for desc in result.descriptors:
                groups.setdefault(desc.family or result.pack_name or "devices", []).append(desc)
            for family, descs in groups.items():
                path = os.path.join(self._output_dir, _filename_for(family))
                with open(path, 'w') as f:
                    dump_family(descs, f)
                written.append(path)
        else:
            for desc in result.descriptors:
                path = os.path.join(self._output_dir, _filename_for(desc.name))
                with open(path, 'w') as f:
                    dump_descriptor(desc, f)
                written.append(path)
        for path in written:
            LOG.debug("wrote %s", path)
        return written
