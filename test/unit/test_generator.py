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
import os
import pytest

from targetgen.core.exceptions import (DuplicateDevice, EntryNotFound, MalformedDescriptor,
        MissingRequiredSymbol, NoCoreDefined, UnsupportedAlgorithmLayout)
from targetgen.core.memory_map import SectorInfo
from targetgen.core.session import Session
from targetgen.generator import (DescriptorWriter, PackGenerator, ReportSink)
from targetgen.pack.archive import PackArchive
from targetgen.pack.family_tree import parse
from targetgen.pack.resolver import resolve
from targetgen.target.serializer import (load_descriptor, load_family)

from .elf_builder import (CODE, SHT_PROGBITS, simple_algo)
from .packs import (PDSC_NAME, family_pack, make_pack, make_pdsc)

VARIANT_NAMES = ["ACME-F4x-Q", "ACME-F4x-T", "ACME-M4A", "ACME-M4B"]

## One good device, devices sharing a broken image, a missing image, and a device without a core.
MIXED_XML = """
    <family Dfamily="F" Dvendor="V:1">
      <processor Dcore="Cortex-M4"/>
      <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
      <memory name="IROM1" access="rx" start="0x08000000" size="0x10000" startup="1"/>
      <device Dname="GOOD">
        <algorithm name="Flash/Good.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
      <device Dname="BAD">
        <algorithm name="Flash/Bad.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
      <device Dname="BAD2">
        <algorithm name="Flash/Bad.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
      <device Dname="MISSING">
        <algorithm name="Flash/Missing.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
    </family>
    <family Dfamily="G" Dvendor="V:1">
      <device Dname="NOCORE">
        <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000"/>
      </device>
    </family>
"""

def mixed_pack():
    return make_pack(make_pdsc(MIXED_XML), {
        "Flash/Good.FLM": simple_algo(),
        "Flash/Bad.FLM": simple_algo(omit=("Init",)),
        })

def generator(**options):
    return PackGenerator(Session(no_config=True, **options))

class RecordingSink(ReportSink):
    def __init__(self):
        self.succeeded = []
        self.failed = []

    def device_succeeded(self, pack_name, outcome):
        self.succeeded.append(outcome.name)

    def device_failed(self, pack_name, outcome):
        self.failed.append(outcome.name)

@pytest.fixture(scope='module')
def family_result():
    gen = generator()
    with PackArchive(family_pack()) as archive:
        result = gen.generate(archive)
    return gen, result

class TestGenerate:
    def test_all_succeed(self, family_result):
        _, result = family_result
        assert result.succeeded
        assert result.pack_name == "TestDFP"
        assert [o.name for o in result.outcomes] == VARIANT_NAMES
        assert [d.name for d in result.descriptors] == VARIANT_NAMES

    def test_algorithm_parsed_once(self, family_result):
        gen, _ = family_result
        assert gen.cache.compute_count == 1

    def test_shared_image_bound_per_device(self, family_result):
        _, result = family_result
        m4a = result.get("ACME-M4A").descriptor.flash_algorithms[0]
        m4b = result.get("ACME-M4B").descriptor.flash_algorithms[0]
        assert m4a.instructions == m4b.instructions
        assert m4a.instructions[m4a.header_size:m4a.header_size + len(CODE)] == CODE
        assert (m4a.ram_start, m4a.ram_size) == (0x20000000, 0x8000)
        assert (m4b.ram_start, m4b.ram_size) == (0x20000000, 0x1000)
        assert m4a.load_address == 0x20007edc
        assert m4b.load_address == 0x20000edc

    def test_variant_memory(self, family_result):
        _, result = family_result
        q = result.get("ACME-F4x-Q").descriptor
        assert [r.name for r in q.memory_map] == ["IROM1", "IRAM1", "IRAM2"]
        assert q.get_region("IROM1").algorithm == "acme_64k"

    def test_get_unknown(self, family_result):
        _, result = family_result
        assert result.get("nothing") is None

    def test_deterministic(self, family_result):
        _, first = family_result
        with PackArchive(family_pack()) as archive:
            second = generator(jobs=1).generate(archive)
        assert [o.descriptor for o in first.outcomes] == [o.descriptor for o in second.outcomes]

    def test_no_blob_header(self):
        with PackArchive(family_pack()) as archive:
            result = generator(algo__blob_header=False).generate(archive)
        algo = result.get("ACME-M4A").descriptor.flash_algorithms[0]
        assert algo.header_size == 0
        assert algo.instructions[:len(CODE)] == CODE
        assert algo.entry_points.init == 0x01

class TestIsolation:
    @pytest.fixture(scope='class')
    def mixed(self):
        gen = generator()
        sink = RecordingSink()
        gen = PackGenerator(gen.session, sink=sink)
        with PackArchive(mixed_pack()) as archive:
            result = gen.generate(archive)
        return gen, sink, result

    def test_good_device(self, mixed):
        _, _, result = mixed
        good = result.get("GOOD")
        assert good.succeeded
        assert good.descriptor.get_region("IROM1").algorithm == "good"

    def test_bad_algorithm(self, mixed):
        _, _, result = mixed
        bad = result.get("BAD")
        assert not bad.succeeded
        assert bad.descriptor is None
        assert isinstance(bad.error, MissingRequiredSymbol)
        assert bad.error.device == "BAD"
        assert bad.entry == "Flash/Bad.FLM"

    def test_shared_error_context(self, mixed):
        _, _, result = mixed
        bad = result.get("BAD")
        bad2 = result.get("BAD2")
        assert isinstance(bad2.error, MissingRequiredSymbol)
        assert bad2.error.device == "BAD2"
        assert bad.error is not bad2.error
        assert "BAD2" in str(bad2.error)

    def test_missing_entry(self, mixed):
        _, _, result = mixed
        missing = result.get("MISSING")
        assert isinstance(missing.error, EntryNotFound)
        assert missing.error.device == "MISSING"
        assert missing.entry == "Flash/Missing.FLM"

    def test_no_core(self, mixed):
        _, _, result = mixed
        nocore = result.get("NOCORE")
        assert isinstance(nocore.error, NoCoreDefined)
        assert nocore.error.device == "NOCORE"
        assert nocore.entry is None

    def test_summary(self, mixed):
        _, _, result = mixed
        assert not result.succeeded
        assert [o.name for o in result.failures] == ["BAD", "BAD2", "MISSING", "NOCORE"]
        assert [d.name for d in result.descriptors] == ["GOOD"]

    def test_sink(self, mixed):
        _, sink, _ = mixed
        assert sink.succeeded == ["GOOD"]
        assert sorted(sink.failed) == ["BAD", "BAD2", "MISSING", "NOCORE"]

    def test_cache(self, mixed):
        gen, _, _ = mixed
        assert gen.cache.compute_count == 3

    def test_failures_logged(self, caplog):
        with caplog.at_level(logging.ERROR, logger="targetgen"):
            with PackArchive(mixed_pack()) as archive:
                generator().generate(archive)
        assert "failed to generate BAD" in caplog.text

class TestPackErrors:
    def test_duplicate_device(self):
        xml = """
            <family Dfamily="F" Dvendor="V:1">
              <processor Dcore="Cortex-M4"/>
              <device Dname="ACME-M4"/>
              <device Dname="ACME-M4"/>
            </family>"""
        with PackArchive(make_pack(make_pdsc(xml))) as archive:
            with pytest.raises(DuplicateDevice) as excinfo:
                generator().generate(archive)
        assert excinfo.value.name == "ACME-M4"
        assert excinfo.value.entry == PDSC_NAME

    def test_malformed(self):
        with PackArchive(make_pack(b"<package><devices>")) as archive:
            with pytest.raises(MalformedDescriptor) as excinfo:
                generator().generate(archive)
        assert excinfo.value.entry == PDSC_NAME

    def test_no_devices(self):
        with PackArchive(make_pack(make_pdsc(""))) as archive:
            result = generator().generate(archive)
        assert result.outcomes == []
        assert result.succeeded


## One image programming two aliases of the same flash.
ALIAS_XML = """
    <family Dfamily="F" Dvendor="V:1">
      <processor Dcore="Cortex-M33"/>
      <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
      <device Dname="TZ">
        <memory name="FLASH_NS" access="rx" start="0x00000000" size="0x10000" startup="1"/>
        <memory name="FLASH_S" access="rx" start="0x10000000" size="0x10000"/>
        <algorithm name="Flash/A.FLM" start="0x00000000" size="0x10000" default="1"/>
        <algorithm name="Flash/A.FLM" start="0x10000000" size="0x10000" default="1"/>
      </device>
    </family>
"""

class TestAliasedFlash:
    @pytest.fixture(scope='class')
    def aliased(self):
        gen = generator()
        with PackArchive(make_pack(make_pdsc(ALIAS_XML), {"Flash/A.FLM": simple_algo()})) as archive:
            result = gen.generate(archive)
        return gen, result.get("TZ")

    def test_sectors_per_alias(self, aliased):
        _, outcome = aliased
        desc = outcome.descriptor
        assert desc.get_region("FLASH_NS").algorithm == "a"
        assert desc.get_region("FLASH_NS").sectors == (SectorInfo(0, 0x1000),)
        assert desc.get_region("FLASH_S").algorithm == "a_1"
        assert desc.get_region("FLASH_S").sectors == (SectorInfo(0x10000000, 0x1000),)

    def test_algorithm_per_alias(self, aliased):
        gen, outcome = aliased
        algos = outcome.descriptor.flash_algorithms
        assert [(a.name, a.flash_start) for a in algos] == [("a", 0), ("a_1", 0x10000000)]
        assert algos[0].instructions == algos[1].instructions
        assert gen.cache.compute_count == 1

## A healthy device next to one whose image has a `.symtab` that is not a symbol table.
MISTYPED_XML = """
    <family Dfamily="F" Dvendor="V:1">
      <processor Dcore="Cortex-M4"/>
      <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
      <memory name="IROM1" access="rx" start="0x08000000" size="0x10000" startup="1"/>
      <device Dname="GOOD">
        <algorithm name="Flash/Good.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
      <device Dname="MISTYPED">
        <algorithm name="Flash/Mistyped.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
    </family>
"""

class TestMalformedImage:
    def test_sibling_unaffected(self):
        files = {
            "Flash/Good.FLM": simple_algo(),
            "Flash/Mistyped.FLM": simple_algo(symtab_type=SHT_PROGBITS),
            }
        with PackArchive(make_pack(make_pdsc(MISTYPED_XML), files)) as archive:
            result = generator().generate(archive)
        assert result.get("GOOD").succeeded
        bad = result.get("MISTYPED")
        assert isinstance(bad.error, UnsupportedAlgorithmLayout)
        assert bad.error.device == "MISTYPED"
        assert bad.entry == "Flash/Mistyped.FLM"
RAM_XML = """
    <family Dfamily="F" Dvendor="V:1">
      <processor Dcore="Cortex-M4"/>
      <memory name="IROM1" access="rx" start="0x08000000" size="0x10000"/>
      <device Dname="RAMSIZE">
        <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
        <algorithm name="Flash/A.FLM" start="0x08000000" size="0x10000" RAMstart="0x20001000" RAMsize="0x2000"/>
      </device>
      <device Dname="RAMSTART">
        <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
        <algorithm name="Flash/A.FLM" start="0x08000000" size="0x10000" RAMstart="0x20001000"/>
      </device>
      <device Dname="OUTSIDE">
        <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
        <algorithm name="Flash/A.FLM" start="0x08000000" size="0x10000" RAMstart="0x30000000"/>
      </device>
      <device Dname="NODEFAULT">
        <memory name="SRAM2" access="rwx" start="0x10000000" size="0x4000"/>
        <memory name="SRAM1" access="rwx" start="0x20000000" size="0x8000"/>
        <algorithm name="Flash/A.FLM" start="0x08000000" size="0x10000" Pname="cm4"/>
      </device>
      <device Dname="NORAM">
        <algorithm name="Flash/A.FLM" start="0x08000000" size="0x10000"/>
      </device>
    </family>
"""

class TestAlgorithmMetadata:
    @pytest.fixture(scope='class')
    def tree(self):
        return parse(make_pdsc(RAM_XML))

    def metadata(self, tree, name, **options):
        variant = resolve(tree.find(name))
        return generator(**options).algorithm_metadata(variant, variant.algorithms[0])

    def test_ram_size(self, tree):
        md = self.metadata(tree, "RAMSIZE")
        assert (md.ram_start, md.ram_size) == (0x20001000, 0x2000)
        assert (md.flash_start, md.flash_size) == (0x08000000, 0x10000)
        assert md.name == "a"

    def test_rest_of_region(self, tree):
        md = self.metadata(tree, "RAMSTART")
        assert (md.ram_start, md.ram_size) == (0x20001000, 0x7000)

    def test_outside_regions(self, tree):
        md = self.metadata(tree, "OUTSIDE")
        assert (md.ram_start, md.ram_size) == (0x30000000, 16 * 1024)
        md = self.metadata(tree, "OUTSIDE", algo__default_ram_size=0x800)
        assert md.ram_size == 0x800

    def test_first_ram(self, tree):
        md = self.metadata(tree, "NODEFAULT")
        assert (md.ram_start, md.ram_size) == (0x10000000, 0x4000)
        assert md.processors == ("cm4",)

    def test_no_ram(self, tree):
        with pytest.raises(UnsupportedAlgorithmLayout):
            self.metadata(tree, "NORAM")

    def test_overrides(self, tree):
        md = self.metadata(tree, "RAMSIZE", algo__page_size=0x400, algo__sector_size=0x800)
        assert md.page_size == 0x400
        assert md.sector_size == 0x800

class TestWriter:
    def test_per_variant(self, family_result, tmp_path):
        _, result = family_result
        written = DescriptorWriter(str(tmp_path / "out")).write(result)
        assert sorted(os.path.basename(p) for p in written) == [n + ".yaml" for n in VARIANT_NAMES]
        for desc in result.descriptors:
            with open(tmp_path / "out" / (desc.name + ".yaml")) as f:
                assert load_descriptor(f) == desc

    def test_grouped(self, family_result, tmp_path):
        _, result = family_result
        written = DescriptorWriter(str(tmp_path), group_by_family=True).write(result)
        assert [os.path.basename(p) for p in written] == ["ACME-F4_Series.yaml"]
        with open(written[0]) as f:
            loaded = load_family(f)
        assert [d.name for d in loaded] == VARIANT_NAMES
        assert loaded == result.descriptors

    def test_failures_not_written(self, tmp_path):
        with PackArchive(mixed_pack()) as archive:
            result = generator().generate(archive)
        written = DescriptorWriter(str(tmp_path)).write(result)
        assert [os.path.basename(p) for p in written] == ["GOOD.yaml"]
