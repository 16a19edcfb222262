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

import logging
import pytest

from targetgen.core.exceptions import MissingAlgorithmForRegion
from targetgen.core.memory_map import SectorInfo
from targetgen.flash.flash_algo import (AlgorithmMetadata, extract)
from targetgen.pack.family_tree import parse
from targetgen.pack.resolver import resolve
from targetgen.target.descriptor import synthesize

from .elf_builder import (flash_device, simple_algo)
from .packs import (family_pdsc, make_pdsc)

def acme_algo(**kwargs):
    args = dict(name="acme_64k", ram_start=0x20000000, ram_size=0x8000, default=True,
            flash_start=0x08000000, flash_size=0x10000)
    args.update(kwargs)
    return extract(simple_algo(), AlgorithmMetadata(**args))

@pytest.fixture(scope='module')
def tree():
    return parse(family_pdsc())

class TestSynthesize:
    def test_identity(self, tree):
        variant = resolve(tree.find("ACME-F4x-Q"))
        desc = synthesize(variant, {"acme_64k": acme_algo()})
        assert desc.name == "ACME-F4x-Q"
        assert desc.device == "ACME-F4x"
        assert desc.vendor == "ACME"
        assert desc.family == "ACME-F4 Series"
        assert desc.families == ("ACME-F4 Series", "ACME-F4x")
        assert desc.cores == variant.cores
        assert (desc.pack_vendor, desc.pack_name, desc.pack_version) == ("ACME", "TestDFP", "1.2.0")

    def test_regions(self, tree):
        desc = synthesize(resolve(tree.find("ACME-F4x-Q")), {"acme_64k": acme_algo()})
        assert [(r.kind, r.name, r.start, r.size) for r in desc.memory_map] == [
            ("flash", "IROM1", 0x08000000, 0x10000),
            ("ram", "IRAM1", 0x20000000, 0x8000),
            ("ram", "IRAM2", 0x20008000, 0x4000),
            ]
        irom = desc.get_region("IROM1")
        assert irom.read and irom.execute and not irom.write
        assert irom.boot
        assert irom.default
        iram2 = desc.get_region("IRAM2")
        assert iram2.read and iram2.write and not iram2.execute
        assert not iram2.boot
        assert desc.get_region("nothing") is None

    def test_flash_region(self, tree):
        desc = synthesize(resolve(tree.find("ACME-M4A")), {"acme_64k": acme_algo()})
        irom = desc.get_region("IROM1")
        assert irom.algorithm == "acme_64k"
        assert irom.sectors == (SectorInfo(0x08000000, 0x1000),)
        assert irom.page_size == 0x100
        assert irom.erased_byte_value == 0xff
        assert irom.end == 0x0800ffff

    def test_algorithms_embedded(self, tree):
        algo = acme_algo()
        desc = synthesize(resolve(tree.find("ACME-M4A")), {"acme_64k": algo})
        assert desc.flash_algorithms == (algo,)
        assert desc.get_algorithm("acme_64k") is algo
        assert desc.get_algorithm("other") is None

    def test_unreferenced_algorithm_dropped(self, tree):
        desc = synthesize(resolve(tree.find("ACME-M4A")),
                {"acme_64k": acme_algo(), "spare": acme_algo(name="spare")})
        assert [a.name for a in desc.flash_algorithms] == ["acme_64k"]

    def test_missing_algorithm(self, tree):
        with pytest.raises(MissingAlgorithmForRegion) as excinfo:
            synthesize(resolve(tree.find("ACME-M4A")), {})
        assert excinfo.value.region == "IROM1"
        assert excinfo.value.device == "ACME-M4A"
        assert "acme_64k" in str(excinfo.value)

    def test_every_programmable_region_has_algorithm(self, tree):
        for node in tree.iter_variants():
            desc = synthesize(resolve(node), {"acme_64k": acme_algo()})
            names = {a.name for a in desc.flash_algorithms}
            for region in desc.memory_map:
                if region.algorithm is not None:
                    assert region.algorithm in names

    def test_regions_do_not_overlap(self, tree):
        desc = synthesize(resolve(tree.find("ACME-F4x-Q")), {"acme_64k": acme_algo()})
        regions = desc.memory_map
        for a, b in zip(regions, regions[1:]):
            assert a.end < b.start

CLIPPED_XML = """
    <family Dfamily="F" Dvendor="V:1">
      <processor Dcore="Cortex-M4"/>
      <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
      <device Dname="D">
        <memory name="IROM1" access="rx" start="0x08004000" size="0x10000"/>
        <algorithm name="Flash/Big.FLM" start="0x08000000" size="0x20000" default="1"/>
      </device>
    </family>
"""

class TestSectors:
    @pytest.fixture
    def variant(self):
        return resolve(parse(make_pdsc(CLIPPED_XML)).find("D"))

    def test_clipped_to_region(self, variant):
        data = simple_algo(device=flash_device(size=0x20000, sectors=((0x1000, 0), (0x4000, 0x10000))))
        algo = extract(data, AlgorithmMetadata("big", 0x20000000, 0x8000,
                flash_start=0x08000000, flash_size=0x20000))
        desc = synthesize(variant, {"big": algo})
        region = desc.get_region("IROM1")
        assert region.sectors == (
            SectorInfo(0x08004000, 0x1000),
            SectorInfo(0x08010000, 0x4000),
            )

    def test_algorithm_not_covering_region(self, variant, caplog):
        # Algorithm for a different flash range.
        algo = extract(simple_algo(), AlgorithmMetadata("big", 0x20000000, 0x8000,
                flash_start=0x10000000, flash_size=0x10000))
        with caplog.at_level(logging.WARNING):
            desc = synthesize(variant, {"big": algo})
        assert desc.get_region("IROM1").sectors == ()
        assert "does not cover" in caplog.text
