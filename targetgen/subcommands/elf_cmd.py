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

import argparse
from typing import List
import logging

from .base import SubcommandBase
from ..core import exceptions
from ..flash.flash_algo import (AlgorithmMetadata, ENTRY_POINT_SYMBOLS, FlashAlgoImage, FlashAlgorithm)
from ..target.serializer import dump_algorithm
from ..utility.mask import parse_int
from ..utility.strings import algorithm_name_from_path

LOG = logging.getLogger(__name__)

## @brief RAM start used when none is given on the command line.
DEFAULT_RAM_START = 0x20000000

class ElfSubcommand(SubcommandBase):
    """@brief `targetgen elf` subcommand.

    Extracts a single flash algorithm image outside of any pack. The RAM the algorithm is bound to
    is given on the command line.
    """

    NAMES = ['elf', 'flm']
    HELP = "Extract a flash algorithm from an ELF image."

    @classmethod
    def get_args(cls) -> List[argparse.ArgumentParser]:
        """@brief Add this subcommand to the subparsers object."""
        parser = argparse.ArgumentParser(description=cls.HELP, add_help=False)

        parser.add_argument("elf", metavar="FLM",
            help="Path to the flash algorithm image.")
        parser.add_argument('--name',
            help="Algorithm name. Defaults to a name derived from the file name.")
        parser.add_argument('-o', '--output', metavar="FILE",
            help="Write the algorithm as YAML to this file.")

        binding = parser.add_argument_group("binding")
        binding.add_argument('--ram-start', type=parse_int, default=DEFAULT_RAM_START,
            help="Start address of RAM available to the algorithm. Default is 0x%08x." % DEFAULT_RAM_START)
        binding.add_argument('--ram-size', type=parse_int,
            help="Size of RAM available to the algorithm. Default is the 'algo.default_ram_size' option.")
        binding.add_argument('--flash-start', type=parse_int,
            help="Override the flash start address read from the image.")
        binding.add_argument('--flash-size', type=parse_int,
            help="Override the flash size read from the image.")

        return [cls.CommonOptions.COMMON, parser]

    def invoke(self) -> int:
        """@brief Handle 'elf' subcommand."""
        session = self._create_session()
        options = session.options

        try:
            with open(self._args.elf, 'rb') as f:
                data = f.read()
        except OSError as err:
            raise exceptions.CommandError("cannot read '%s': %s" % (self._args.elf, err)) from err

        name = self._args.name or algorithm_name_from_path(self._args.elf)
        try:
            image = FlashAlgoImage(data, segment_policy=options.get('algo.segment_policy'),
                    max_segment_size=options.get('algo.max_segment_size'))
            metadata = AlgorithmMetadata(
                    name=name,
                    ram_start=self._args.ram_start,
                    ram_size=self._args.ram_size or options.get('algo.default_ram_size'),
                    flash_start=self._args.flash_start,
                    flash_size=self._args.flash_size,
                    page_size=options.get('algo.page_size'),
                    sector_size=options.get('algo.sector_size'),
                    )
            algo = FlashAlgorithm.from_image(image, metadata,
                    blob_header=options.get('algo.blob_header'),
                    min_stack_size=options.get('algo.min_stack_size'))
        except exceptions.Error as err:
            raise err.with_context(entry=self._args.elf)

        if image.flash_info is not None:
            print(image.flash_info)
        self._print_summary(algo)

        if self._args.output:
            with open(self._args.output, 'w') as f:
                dump_algorithm(algo, f)
            LOG.info("wrote %s", self._args.output)
        return 0

    def _print_summary(self, algo: FlashAlgorithm) -> None:
        pt = self._get_pretty_table(["Property", "Value"], header=False)
        pt.add_row(["name", algo.name])
        pt.add_row(["flash", "0x%08x-0x%08x" % (algo.flash_start, algo.flash_start + algo.flash_size - 1)])
        pt.add_row(["page size", "0x%x" % algo.page_size])
        pt.add_row(["sectors", len(algo.sectors)])
        pt.add_row(["load address", "0x%08x" % algo.load_address])
        pt.add_row(["instructions", "%d bytes" % len(algo.instructions)])
        pt.add_row(["stack pointer", "0x%08x" % algo.stack_pointer])
        pt.add_row(["page buffers", ", ".join("0x%08x" % b for b in algo.page_buffers)])
        for symbol, field_name in ENTRY_POINT_SYMBOLS.items():
            pc = algo.pc(field_name)
            if pc is not None:
                pt.add_row([symbol, "0x%08x" % pc])
        print(pt)
