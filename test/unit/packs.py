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

"""Builds family descriptions and pack archives in memory."""

import io
from typing import (Dict, Optional)
import zipfile

from .elf_builder import simple_algo

PDSC_NAME = "ACME.TestDFP.pdsc"
ALGO_PATH = "Flash/ACME_64K.FLM"

def make_pdsc(devices: str, name: str = "TestDFP", vendor: str = "ACME", version: str = "1.2.0") -> bytes:
    """Wrap `<family>` elements in a package document."""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<package schemaVersion="1.7" xmlns:xs="http://www.w3.org/2001/XMLSchema-instance">
  <vendor>{vendor}</vendor>
  <name>{name}</name>
  <description>Test device family pack</description>
  <releases>
    <release version="{version}">Latest.</release>
    <release version="1.0.0">First.</release>
  </releases>
  <devices>
{devices}
  </devices>
</package>
""".encode()

def make_pack(pdsc: bytes, files: Optional[Dict[str, bytes]] = None, pdsc_name: str = PDSC_NAME) -> bytes:
    """Return the bytes of a zip archive holding the document and other files."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w') as zf:
        zf.writestr(pdsc_name, pdsc)
        for path, data in (files or {}).items():
            zf.writestr(path, data)
    return buf.getvalue()

## Family with two devices that share one algorithm image, plus a subfamily with variants.
FAMILY_XML = """
    <family Dfamily="ACME-F4 Series" Dvendor="ACME:999">
      <processor Dcore="Cortex-M4" Dfpu="SP_FPU" Dmpu="MPU" Dendian="Little-endian" Dclock="100000000"/>
      <description>ACME F4 microcontrollers</description>
      <memory name="IRAM1" access="rwx" start="0x20000000" size="0x8000" default="1"/>
      <device Dname="ACME-M4A">
        <memory name="IROM1" access="rx" start="0x08000000" size="0x10000" startup="1" default="1"/>
        <algorithm name="Flash\\ACME_64K.FLM" start="0x08000000" size="0x10000" default="1"/>
      </device>
      <device Dname="ACME-M4B">
        <memory name="IROM1" access="rx" start="0x08000000" size="0x10000" startup="1" default="1"/>
        <algorithm name="Flash/ACME_64K.FLM" start="0x08000000" size="0x10000" RAMstart="0x20000000" RAMsize="0x1000" default="1"/>
      </device>
      <subFamily DsubFamily="ACME-F4x">
        <memory name="IROM1" access="rx" start="0x08000000" size="0x10000" startup="1" default="1"/>
        <algorithm name="Flash/ACME_64K.FLM" start="0x08000000" size="0x10000" default="1"/>
        <device Dname="ACME-F4x">
          <variant Dvariant="ACME-F4x-T"/>
          <variant Dvariant="ACME-F4x-Q">
            <memory name="IRAM2" access="rw" start="0x20008000" size="0x4000"/>
          </variant>
        </device>
      </subFamily>
    </family>
"""

def family_pdsc() -> bytes:
    return make_pdsc(FAMILY_XML)

def family_pack(algo: Optional[bytes] = None, **kwargs) -> bytes:
    if algo is None:
        algo = simple_algo(**kwargs)
    return make_pack(family_pdsc(), {ALGO_PATH: algo})
