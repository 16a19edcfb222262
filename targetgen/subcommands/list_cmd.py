# targetgen
# Copyright (c) 2021 Chris Reed
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

import argparse
from typing import List
import logging

from .pack_cmd import PackSubcommandBase
from ..core import exceptions
from ..pack.archive import PackArchive
from ..pack.family_tree import parse
from ..pack.resolver import resolve

LOG = logging.getLogger(__name__)

class ListSubcommand(PackSubcommandBase):
    """@brief `targetgen list` subcommand."""

    NAMES = ['list']
    HELP = "List the device variants of a pack with their cores, memory and flash algorithms."

    @classmethod
    def get_args(cls) -> List[argparse.ArgumentParser]:
        """@brief Add this subcommand to the subparsers object."""
        list_parser = argparse.ArgumentParser(description=cls.HELP, add_help=False)

        list_parser.add_argument("pack", metavar="PATH",
            help="Path to a .pack file or an expanded pack directory.")
        cls._add_pack_dir_argument(list_parser)

        list_options = list_parser.add_argument_group('list options')
        list_options.add_argument('-n', '--name',
            help="Restrict listing to variants whose name contains the given string.")
        list_options.add_argument('-m', '--memory', action='store_true',
            help="List the resolved memory map of each variant.")
        list_options.add_argument('-H', '--no-header', action='store_true',
            help="Don't print a table header.")

        return [cls.CommonOptions.COMMON, list_parser]

    def invoke(self) -> int:
        """@brief Handle 'list' subcommand."""
        # Create a session so any logging config is loaded.
        self._create_session()

        path = self._get_source().find(self._args.pack)
        with PackArchive(path) as archive:
            try:
                tree = parse(archive.pdsc_bytes)
            except exceptions.Error as err:
                raise err.with_context(entry=archive.pdsc_name)

        status = 0
        variant_table = self._get_pretty_table(["Name", "Vendor", "Family", "Cores", "Regions", "Algorithms"])
        region_table = self._get_pretty_table(["Device", "Region", "Type", "Start", "End", "Access", "Algorithm"])
        name_filter = self._args.name.lower() if self._args.name else None
        for node in tree.iter_variants():
            if name_filter is not None and name_filter not in node.name.lower():
                continue
            try:
                variant = resolve(node)
            except exceptions.Error as err:
                LOG.error("%s", err)
                status = 1
                continue

            variant_table.add_row([
                        variant.name,
                        variant.vendor,
                        variant.families[0] if variant.families else "",
                        ", ".join("%s (%s)" % (c.name, c.core_type) for c in variant.cores),
                        len(variant.memory_map),
                        ", ".join(b.name for b in variant.algorithms),
                        ])
            for region in variant.memory_map:
                region_table.add_row([
                            variant.name,
                            region.name,
                            region.type.name.lower(),
                            "0x%08x" % region.start,
                            "0x%08x" % region.end,
                            region.access,
                            getattr(region, 'algorithm', None) or "",
                            ])

        print(region_table if self._args.memory else variant_table)
        return status
