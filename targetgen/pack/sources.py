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
from pathlib import Path
from typing import (List, Sequence, Union)

from ..core.exceptions import ArchiveError
from .archive import PackArchive

LOG = logging.getLogger(__name__)

class PackSource:
    """@brief Interface for services that provide pack archives by identifier."""

    def get_pack_bytes(self, pack_id: str) -> bytes:
        """@brief Return the raw bytes of a pack.
        @exception ArchiveError The pack is not available.
        """
        raise NotImplementedError()

    def open_pack(self, pack_id: str) -> PackArchive:
        """@brief Return an opened pack."""
        return PackArchive.open(self.get_pack_bytes(pack_id))

class LocalPackSource(PackSource):
    """@brief Packs from the local filesystem.

    A pack identifier is either a path to a .pack file or expanded pack directory, or the file
    name of a pack within one of the search directories. The `.pack` suffix may be omitted.
    """

    def __init__(self, search_dirs: Sequence[Union[str, Path]] = ()) -> None:
        self._search_dirs = [Path(d).expanduser() for d in search_dirs]

    def find(self, pack_id: str) -> Path:
        """@brief Return the path of a pack.
        @exception ArchiveError No pack with this identifier exists.
        """
        candidates: List[Path] = [Path(pack_id).expanduser()]
        for d in self._search_dirs:
            candidates += [d / pack_id, d / (pack_id + ".pack")]
        for path in candidates:
            if path.exists():
                LOG.debug("pack %s found at %s", pack_id, path)
                return path
        raise ArchiveError("pack '%s' not found" % pack_id)

    def get_pack_bytes(self, pack_id: str) -> bytes:
        path = self.find(pack_id)
        if path.is_dir():
            raise ArchiveError("pack '%s' is an expanded directory; use open_pack()" % pack_id)
        try:
            return path.read_bytes()
        except OSError as err:
            raise ArchiveError("failed to read pack '%s': %s" % (pack_id, err)) from err

    def open_pack(self, pack_id: str) -> PackArchive:
        return PackArchive(self.find(pack_id))

    def iter_packs(self) -> List[Path]:
        """@brief All .pack files in the search directories, sorted."""
        paths: List[Path] = []
        for d in self._search_dirs:
            if d.is_dir():
                paths += [p for p in d.iterdir() if p.suffix == ".pack"]
        return sorted(paths)
