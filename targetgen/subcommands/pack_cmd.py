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
from pathlib import Path
from typing import (List, Optional)
import logging

from .base import SubcommandBase
from ..core import exceptions
from ..core.session import Session
from ..generator import (DescriptorWriter, GenerationResult, PackGenerator)
from ..pack.archive import PackArchive
from ..pack.sources import LocalPackSource

LOG = logging.getLogger(__name__)

class PackSubcommandBase(SubcommandBase):
    """@brief Base class for subcommands that read packs."""

    @classmethod
    def _add_pack_dir_argument(cls, parser: argparse.ArgumentParser) -> None:
        parser.add_argument('-d', '--pack-dir', action='append', metavar="DIR", default=[],
            help="Directory to search for packs named on the command line. Can be specified multiple times.")

    def _get_source(self) -> LocalPackSource:
        return LocalPackSource(self._args.pack_dir)

    def _expand_pack_paths(self, source: LocalPackSource, pack_ids: List[str]) -> List[Path]:
        """@brief Convert command line pack arguments to pack paths.

        A directory that is not itself an expanded pack is replaced by the .pack files it contains.
        """
        paths: List[Path] = []
        for pack_id in pack_ids:
            path = source.find(pack_id)
            if path.is_dir() and not any(path.glob("*.pdsc")):
                contained = LocalPackSource([path]).iter_packs()
                if not contained:
                    LOG.warning("no packs found in %s", path)
                paths += contained
            else:
                paths.append(path)
        return paths

    def _generate(self, session: Session, path: Path) -> Optional[GenerationResult]:
        """@brief Generate one pack.
        @return The result, or None if the pack could not be processed at all.
        """
        generator = PackGenerator(session)
        try:
            with PackArchive(path) as archive:
                return generator.generate(archive)
        except exceptions.Error as err:
            LOG.error("%s: %s", path, err, exc_info=session.log_tracebacks)
            return None

class PackSubcommand(PackSubcommandBase):
    """@brief `targetgen pack` subcommand."""

    NAMES = ['pack', 'generate']
    HELP = "Generate target descriptors for the devices of one or more packs."

    @classmethod
    def get_args(cls) -> List[argparse.ArgumentParser]:
        """@brief Add this subcommand to the subparsers object."""
        parser = argparse.ArgumentParser(description=cls.HELP, add_help=False)

        parser.add_argument("packs", metavar="PATH", nargs='+',
            help="Path to a .pack file, an expanded pack directory, or a directory of packs.")
        cls._add_pack_dir_argument(parser)

        output_options = parser.add_argument_group("output")
        output_options.add_argument('-o', '--output', metavar="DIR",
            help="Directory for generated descriptors. Default is the 'output_dir' option.")
        output_options.add_argument('--group-by-family', action='store_true', default=None,
            help="Write one file per device family instead of one per device.")
        output_options.add_argument('-n', '--dry-run', action='store_true',
            help="Generate descriptors without writing them.")

        generate_options = parser.add_argument_group("generation")
        generate_options.add_argument('-j', '--jobs', type=int, metavar="N",
            help="Number of worker threads. Default is the number of CPUs.")

        return [cls.CommonOptions.COMMON, parser]

    def invoke(self) -> int:
        """@brief Handle 'pack' subcommand."""
        session = self._create_session(
                output_dir=self._args.output,
                output__group_by_family=self._args.group_by_family,
                jobs=self._args.jobs,
                )

        status = 0
        source = self._get_source()
        for path in self._expand_pack_paths(source, self._args.packs):
            LOG.info("Generating descriptors for %s", path)
            result = self._generate(session, path)
            if result is None:
                status = 1
                continue

            if not self._args.dry_run:
                writer = DescriptorWriter(session.options.get('output_dir'),
                        session.options.get('output.group_by_family'))
                written = writer.write(result)
                LOG.info("%s: wrote %d file(s) to %s", result.pack_name, len(written),
                        session.options.get('output_dir'))

            if not result.succeeded:
                LOG.warning("%s: %d of %d devices failed", result.pack_name, len(result.failures),
                        len(result.outcomes))
                status = 1
        return status
