# targetgen
# Copyright (c) 2019-2020 Arm Limited
# Copyright (c) 2021-2023 Chris Reed
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

import hashlib
import io
import logging
from pathlib import Path
import threading
from typing import (IO, List, Optional, Union)
import zipfile

from ..core.exceptions import (CorruptArchive, EntryNotFound)

LOG = logging.getLogger(__name__)

class PackArchive:
    """@brief Read-only access to the entries of a CMSIS-Pack.

    A pack is a zip file holding one `.pdsc` family description plus the files it references,
    such as flash algorithms. An expanded pack, a directory with the same contents, is supported
    as well.

    Entry names are exact and case-sensitive. References taken from the `.pdsc` go through
    resolve_reference(), which converts backslash separators and makes the path relative to the
    directory containing the `.pdsc`.

    Instances do not change after construction and may be read from several threads at once.
    """

    def __init__(self, file_or_path: Union[str, Path, bytes, zipfile.ZipFile, IO[bytes]]) -> None:
        """@brief Constructor.

        @param self
        @param file_or_path The pack to open. These values are supported:
            - Bytes of a .pack file.
            - String or Path that is the path to a .pack file (a Zip file).
            - String or Path that is the path to the root directory of an expanded pack.
            - `ZipFile` object.
            - File-like object that is already opened.

        @exception CorruptArchive The pack is not a zip file, or the .pdsc file is missing
            from within the pack.
        """
        self._lock = threading.Lock()
        self._is_dir = False
        self._dir_path: Optional[Path] = None
        self._pack_file: Optional[zipfile.ZipFile] = None
        self._filename: Optional[str] = None

        if isinstance(file_or_path, (bytes, bytearray)):
            self._identity = "sha1:" + hashlib.sha1(file_or_path).hexdigest()
            file_or_path = io.BytesIO(bytes(file_or_path))
        elif isinstance(file_or_path, (str, Path)):
            path = Path(file_or_path).expanduser()
            self._filename = str(path)
            self._identity = str(path.resolve())
            self._is_dir = path.is_dir()
            if self._is_dir:
                self._dir_path = path.resolve()
            else:
                file_or_path = str(path)
        elif isinstance(file_or_path, zipfile.ZipFile):
            self._filename = file_or_path.filename
            self._identity = file_or_path.filename or "zip:%x" % id(file_or_path)
        else:
            self._filename = getattr(file_or_path, 'name', None)
            self._identity = self._filename or "file:%x" % id(file_or_path)

        if isinstance(file_or_path, zipfile.ZipFile):
            self._pack_file = file_or_path
        elif not self._is_dir:
            try:
                self._pack_file = zipfile.ZipFile(file_or_path, 'r')
            except (zipfile.BadZipFile, OSError) as err:
                raise CorruptArchive(f"Failed to open CMSIS-Pack '{self._filename or '<bytes>'}': {err}") from err

        # Find the .pdsc file.
        for name in self.namelist():
            if name.endswith('.pdsc'):
                self._pdsc_name = name
                break
        else:
            raise CorruptArchive(f"CMSIS-Pack '{self._filename or '<bytes>'}' is missing a .pdsc file")

        self._pdsc_bytes = self.read_entry(self._pdsc_name)

    @classmethod
    def open(cls, data: bytes) -> "PackArchive":
        """@brief Open a pack from its raw bytes."""
        return cls(data)

    @property
    def filename(self) -> Optional[str]:
        """@brief Accessor for the filename or path of the pack, if known."""
        return self._filename

    @property
    def identity(self) -> str:
        """@brief Stable key identifying this pack.

        This is the resolved path for packs opened from the filesystem, or a digest of the
        contents for packs opened from bytes.
        """
        return self._identity

    @property
    def pdsc_name(self) -> str:
        """@brief Entry name of the .pdsc file."""
        return self._pdsc_name

    @property
    def pdsc_bytes(self) -> bytes:
        """@brief Raw contents of the .pdsc family description."""
        return self._pdsc_bytes

    def namelist(self) -> List[str]:
        """@brief List of all file entry names in the pack."""
        if self._is_dir:
            assert self._dir_path is not None
            return sorted(p.relative_to(self._dir_path).as_posix()
                    for p in self._dir_path.rglob('*') if p.is_file())
        assert self._pack_file is not None
        return [n for n in self._pack_file.namelist() if not n.endswith('/')]

    def resolve_reference(self, filename: str) -> str:
        """@brief Convert a file reference from the .pdsc into an entry name.

        Some vendors place their pdsc in a subdirectory of the pack archive, so references are
        relative to the directory of the pdsc file.
        """
        filename = filename.replace('\\', '/')
        pdsc_base = self._pdsc_name.rsplit('/', 1)
        if len(pdsc_base) == 2:
            filename = f'{pdsc_base[0]}/{filename}'
        return filename

    def read_entry(self, path: str) -> bytes:
        """@brief Return the contents of one entry.

        @exception EntryNotFound No entry has exactly this name.
        @exception CorruptArchive The entry could not be decompressed.
        """
        if self._is_dir:
            assert self._dir_path is not None
            file_path = (self._dir_path / path).resolve()
            # Entries never name a file outside of the pack directory.
            try:
                file_path.relative_to(self._dir_path)
            except ValueError:
                raise EntryNotFound(path) from None
            if not file_path.is_file():
                raise EntryNotFound(path)
            return file_path.read_bytes()

        assert self._pack_file is not None
        with self._lock:
            try:
                return self._pack_file.read(path)
            except KeyError:
                raise EntryNotFound(path) from None
            except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as err:
                raise CorruptArchive(f"Failed to read '{path}' from CMSIS-Pack: {err}") from err

    def read_reference(self, filename: str) -> bytes:
        """@brief Read a file referenced from the .pdsc."""
        return self.read_entry(self.resolve_reference(filename))

    def close(self) -> None:
        if self._pack_file is not None:
            self._pack_file.close()

    def __enter__(self) -> "PackArchive":
        return self

    def __exit__(self, exc_type, value, traceback) -> bool:
        self.close()
        return False

    def __repr__(self) -> str:
        return "<%s@%x %s>" % (self.__class__.__name__, id(self), self._filename or self._identity)
