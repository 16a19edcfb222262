# targetgen
# Copyright (c) 2016-2020 Arm Limited
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

from collections import namedtuple
import logging

from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection
from intervaltree import IntervalTree

LOG = logging.getLogger(__name__)

SymbolInfo = namedtuple('SymbolInfo', 'name address size type')

class ElfSymbolDecoder:
    """@brief Name and address lookup of function and object symbols."""

    def __init__(self, elf):
        assert isinstance(elf, ELFFile)
        self.elffile = elf

        self.symtab = self.elffile.get_section_by_name('.symtab')
        if not isinstance(self.symtab, SymbolTableSection):
            self.symtab = None
        self.symbol_dict = {}
        self.symbol_tree = IntervalTree()

        if self.symtab is not None:
            self._build_symbol_search_tree()

    def get_elf(self):
        return self.elffile

    def get_symbol_for_address(self, addr):
        try:
            return sorted(self.symbol_tree[addr])[0].data
        except IndexError:
            return None

    def get_symbol_for_name(self, name):
        try:
            return self.symbol_dict[name]
        except KeyError:
            return None

    def _build_symbol_search_tree(self):
        symbols = self.symtab.iter_symbols()
        for symbol in symbols:
            # Only look for functions and objects.
            sym_type = symbol.entry['st_info']['type']
            if sym_type not in ['STT_FUNC', 'STT_OBJECT']:
                continue

            # Undefined symbols have no address.
            if symbol.entry['st_shndx'] == 'SHN_UNDEF':
                continue

            sym_value = symbol.entry['st_value']
            sym_size = symbol.entry['st_size']

            # Cannot put an empty interval into the tree, so ensure symbols have
            # at least a size of 1.
            real_sym_size = sym_size
            if sym_size == 0:
                sym_size = 1

            syminfo = SymbolInfo(name=symbol.name, address=sym_value, size=real_sym_size, type=sym_type)

            # Global definitions win over a local of the same name.
            if symbol.name in self.symbol_dict and symbol.entry['st_info']['bind'] == 'STB_LOCAL':
                LOG.debug("ignoring local symbol %s shadowed by an earlier definition", symbol.name)
            else:
                self.symbol_dict[symbol.name] = syminfo

            # Add to symbol tree.
            self.symbol_tree.addi(sym_value, sym_value+sym_size, syminfo)
