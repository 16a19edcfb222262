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

import base64
from dataclasses import fields
import logging
from typing import (Any, Dict, IO, List, Optional, Sequence, Union)

import yaml

from ..core.exceptions import MalformedDescriptor
from ..core.memory_map import SectorInfo
from ..flash.flash_algo import (EntryPoints, FlashAlgorithm)
from ..pack.resolver import CoreInfo
from ..utility.strings import uniquify_name
from .descriptor import (RegionDescriptor, TargetDescriptor)

LOG = logging.getLogger(__name__)

class HexInt(int):
    """@brief Integer written in hexadecimal in the output."""
    pass

class _Dumper(yaml.SafeDumper):
    pass

def _represent_hex(dumper: yaml.SafeDumper, data: HexInt) -> yaml.Node:
    return dumper.represent_scalar('tag:yaml.org,2002:int', "0x%x" % data)

_Dumper.add_representer(HexInt, _represent_hex)

def _hex(value: Optional[int]) -> Optional[int]:
    return None if value is None else HexInt(value)

def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}

def _sectors_to_list(sectors: Sequence[SectorInfo]) -> List[Dict[str, int]]:
    return [{'address': HexInt(s.address), 'size': HexInt(s.size)} for s in sectors]

def _sectors_from_list(items: Optional[List[Dict[str, int]]]) -> tuple:
    return tuple(SectorInfo(int(s['address']), int(s['size'])) for s in (items or []))

def core_to_dict(core: CoreInfo) -> Dict[str, Any]:
    return _drop_none({
        'name': core.name,
        'type': core.core_type,
        'dcore': core.dcore,
        'address_width': core.address_width,
        'fpu': core.fpu,
        'mpu': core.mpu,
        'endian': core.endian,
        'units': core.units,
        })

def core_from_dict(d: Dict[str, Any]) -> CoreInfo:
    return CoreInfo(
        name=d['name'],
        core_type=d['type'],
        dcore=d['dcore'],
        address_width=d.get('address_width', 32),
        fpu=d.get('fpu'),
        mpu=d.get('mpu'),
        endian=d.get('endian'),
        units=d.get('units', 1),
        )

def region_to_dict(region: RegionDescriptor) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        'kind': region.kind,
        'name': region.name,
        'start': HexInt(region.start),
        'size': HexInt(region.size),
        'access': {
            'read': region.read,
            'write': region.write,
            'execute': region.execute,
            'boot': region.boot,
            'default': region.default,
            },
        }
    if region.uninit:
        result['uninit'] = True
    if region.alias is not None:
        result['alias'] = region.alias
    if region.cores:
        result['cores'] = list(region.cores)
    if region.kind == 'flash':
        result.update(_drop_none({
            'algorithm': region.algorithm,
            'page_size': _hex(region.page_size),
            'erased_byte_value': _hex(region.erased_byte_value),
            }))
        result['sectors'] = _sectors_to_list(region.sectors)
    return result

def region_from_dict(d: Dict[str, Any]) -> RegionDescriptor:
    access = d.get('access', {})
    return RegionDescriptor(
        kind=d['kind'],
        name=d['name'],
        start=int(d['start']),
        size=int(d['size']),
        read=access.get('read', True),
        write=access.get('write', False),
        execute=access.get('execute', False),
        boot=access.get('boot', False),
        default=access.get('default', False),
        uninit=d.get('uninit', False),
        alias=d.get('alias'),
        cores=tuple(d.get('cores', ())),
        algorithm=d.get('algorithm'),
        sectors=_sectors_from_list(d.get('sectors')),
        page_size=d.get('page_size'),
        erased_byte_value=d.get('erased_byte_value'),
        )

def algorithm_to_dict(algo: FlashAlgorithm) -> Dict[str, Any]:
    entry_points = {f.name: _hex(getattr(algo.entry_points, f.name)) for f in fields(EntryPoints)}
    result = {
        'name': algo.name,
        'description': algo.description,
        'default': algo.default,
        'instructions': base64.b64encode(algo.instructions).decode('ascii'),
        'load_address': HexInt(algo.load_address),
        'header_size': algo.header_size,
        'entry_points': _drop_none(entry_points),
        'data_section_offset': HexInt(algo.data_section_offset),
        'stack_pointer': HexInt(algo.stack_pointer),
        'stack_size': HexInt(algo.stack_size),
        'page_buffers': [HexInt(b) for b in algo.page_buffers],
        'buffer_size': HexInt(algo.buffer_size),
        'ram': {'start': HexInt(algo.ram_start), 'size': HexInt(algo.ram_size)},
        'flash': {'start': HexInt(algo.flash_start), 'size': HexInt(algo.flash_size)},
        'page_size': HexInt(algo.page_size),
        'sector_size': HexInt(algo.sector_size),
        'sectors': _sectors_to_list(algo.sectors),
        'erased_byte_value': HexInt(algo.erased_byte_value),
        'program_timeout': algo.program_timeout,
        'erase_timeout': algo.erase_timeout,
        'big_endian': algo.big_endian,
        'cores': list(algo.processors),
        }
    return _drop_none(result)

def algorithm_from_dict(d: Dict[str, Any]) -> FlashAlgorithm:
    try:
        instructions = base64.b64decode(d['instructions'], validate=True)
    except ValueError as err:
        raise MalformedDescriptor("invalid instructions encoding for algorithm '%s': %s"
                % (d.get('name'), err)) from err
    return FlashAlgorithm(
        name=d['name'],
        description=d.get('description', ""),
        default=d.get('default', False),
        instructions=instructions,
        load_address=d['load_address'],
        entry_points=EntryPoints(**d['entry_points']),
        data_section_offset=d['data_section_offset'],
        stack_pointer=d['stack_pointer'],
        stack_size=d['stack_size'],
        page_buffers=tuple(d['page_buffers']),
        ram_start=d['ram']['start'],
        ram_size=d['ram']['size'],
        flash_start=d['flash']['start'],
        flash_size=d['flash']['size'],
        page_size=d['page_size'],
        sector_size=d['sector_size'],
        sectors=_sectors_from_list(d.get('sectors')),
        erased_byte_value=d.get('erased_byte_value', 0xff),
        program_timeout=d.get('program_timeout'),
        erase_timeout=d.get('erase_timeout'),
        big_endian=d.get('big_endian', False),
        header_size=d.get('header_size', 0),
        processors=tuple(d.get('cores', ())),
        )

def descriptor_to_dict(desc: TargetDescriptor, algorithms: bool = True) -> Dict[str, Any]:
    """@brief Convert a descriptor to plain, ordered data.

    @param desc The descriptor.
    @param algorithms If false, only the names of the flash algorithms are included.
    """
    result: Dict[str, Any] = _drop_none({
        'name': desc.name,
        'vendor': desc.vendor,
        'family': desc.family,
        'families': list(desc.families),
        'device': desc.device,
        'description': desc.description,
        })
    pack = _drop_none({'vendor': desc.pack_vendor, 'name': desc.pack_name, 'version': desc.pack_version})
    if pack:
        result['pack'] = pack
    result['cores'] = [core_to_dict(c) for c in desc.cores]
    result['memory_map'] = [region_to_dict(r) for r in desc.memory_map]
    if algorithms:
        result['flash_algorithms'] = [algorithm_to_dict(a) for a in desc.flash_algorithms]
    else:
        result['flash_algorithms'] = [a.name for a in desc.flash_algorithms]
    return result

def descriptor_from_dict(d: Dict[str, Any],
        algorithms: Optional[Dict[str, FlashAlgorithm]] = None) -> TargetDescriptor:
    """@brief Inverse of descriptor_to_dict().

    @param d The data.
    @param algorithms When flash algorithms are stored by name, the map used to look them up.
    @exception MalformedDescriptor The data does not have the expected structure.
    """
    try:
        flash_algorithms = []
        for a in d.get('flash_algorithms', []):
            if isinstance(a, str):
                if algorithms is None or a not in algorithms:
                    raise MalformedDescriptor("unknown flash algorithm '%s'" % a, d.get('name'))
                flash_algorithms.append(algorithms[a])
            else:
                flash_algorithms.append(algorithm_from_dict(a))
        pack = d.get('pack', {})
        return TargetDescriptor(
            name=d['name'],
            vendor=d.get('vendor', ""),
            device=d.get('device', d['name']),
            families=tuple(d.get('families', ())),
            cores=tuple(core_from_dict(c) for c in d.get('cores', [])),
            memory_map=tuple(region_from_dict(r) for r in d.get('memory_map', [])),
            flash_algorithms=tuple(flash_algorithms),
            description=d.get('description'),
            pack_vendor=pack.get('vendor'),
            pack_name=pack.get('name'),
            pack_version=pack.get('version'),
            )
    except (KeyError, TypeError, AttributeError) as err:
        raise MalformedDescriptor("invalid target descriptor data: %s" % err) from err

def _dump(data: Any, stream: Optional[IO[str]]) -> Optional[str]:
    return yaml.dump(data, stream, Dumper=_Dumper, sort_keys=False, default_flow_style=False)

def dump_descriptor(desc: TargetDescriptor, stream: Optional[IO[str]] = None) -> Optional[str]:
    """@brief Serialize one descriptor as YAML.
    @return The YAML text if `stream` is None.
    """
    return _dump(descriptor_to_dict(desc), stream)

def dump_algorithm(algo: FlashAlgorithm, stream: Optional[IO[str]] = None) -> Optional[str]:
    """@brief Serialize a single flash algorithm as YAML."""
    return _dump(algorithm_to_dict(algo), stream)

def _load(text: Union[str, bytes, IO]) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise MalformedDescriptor("invalid YAML: %s" % err) from err

def load_descriptor(text: Union[str, bytes, IO]) -> TargetDescriptor:
    """@brief Load a descriptor written by dump_descriptor()."""
    data = _load(text)
    if not isinstance(data, dict):
        raise MalformedDescriptor("target descriptor must be a mapping")
    return descriptor_from_dict(data)

def family_to_dict(descs: Sequence[TargetDescriptor]) -> Dict[str, Any]:
    """@brief Group descriptors of one family, sharing identical flash algorithms.

    The family's `flash_algorithms` is a mapping from a key to an algorithm, and each variant lists
    the keys of its algorithms. Keys start as the algorithm name. Algorithms with the same name but
    different contents, for instance when bound to different RAM, get distinct keys. The algorithms
    themselves keep their names, so regions still refer to them by name.
    """
    algos: Dict[str, Dict[str, Any]] = {}
    variants = []
    for desc in descs:
        d = descriptor_to_dict(desc, algorithms=False)
        keys = []
        for algo in desc.flash_algorithms:
            algo_dict = algorithm_to_dict(algo)
            key = next((k for k, existing in algos.items() if existing == algo_dict), None)
            if key is None:
                key = uniquify_name(algo.name, list(algos.keys()))
                algos[key] = algo_dict
            keys.append(key)
        d['flash_algorithms'] = keys
        variants.append(d)

    first = descs[0] if descs else None
    result: Dict[str, Any] = _drop_none({
        'family': first.family if first else None,
        'vendor': first.vendor if first else None,
        })
    result['variants'] = variants
    result['flash_algorithms'] = algos
    return result

def dump_family(descs: Sequence[TargetDescriptor], stream: Optional[IO[str]] = None) -> Optional[str]:
    """@brief Serialize the descriptors of one family as a single YAML document."""
    return _dump(family_to_dict(descs), stream)

def load_family(text: Union[str, bytes, IO]) -> List[TargetDescriptor]:
    """@brief Load descriptors written by dump_family()."""
    data = _load(text)
    if not isinstance(data, dict) or 'variants' not in data:
        raise MalformedDescriptor("family document must be a mapping with a 'variants' list")
    stored = data.get('flash_algorithms') or {}
    if not isinstance(stored, dict):
        raise MalformedDescriptor("family 'flash_algorithms' must be a mapping")
    try:
        algorithms = {key: algorithm_from_dict(a) for key, a in stored.items()}
    except (KeyError, TypeError, AttributeError) as err:
        raise MalformedDescriptor("invalid flash algorithm data: %s" % err) from err
    return [descriptor_from_dict(v, algorithms) for v in data['variants']]
