# targetgen
# Copyright (c) 2018-2020 Arm Limited
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

from typing import (Any, Optional, Sequence)

class Error(RuntimeError):
    """@brief Parent of all errors targetgen can raise.

    Every error optionally records the device variant and the pack entry it relates to. These are
    passed to the constructor as the `device` and `entry` keyword arguments, or attached later with
    with_context(), and are included in the description of the exception when it is converted to a
    string.
    """
    def __init__(self, *args: Any, device: Optional[str] = None, entry: Optional[str] = None) -> None:
        super().__init__(*args)
        self._device = device
        self._entry = entry

    @property
    def device(self) -> Optional[str]:
        return self._device

    @property
    def entry(self) -> Optional[str]:
        return self._entry

    def with_context(self, device: Optional[str] = None, entry: Optional[str] = None) -> "Error":
        """@brief Fill in context fields that are not already set.
        @return The exception itself, so it can be re-raised directly.
        """
        if self._device is None:
            self._device = device
        if self._entry is None:
            self._entry = entry
        return self

    def __copy__(self) -> "Error":
        # Subclass constructors take different arguments, so copy without calling them.
        new = self.__class__.__new__(self.__class__)
        new.args = self.args
        new.__dict__.update(self.__dict__)
        new.__cause__ = self.__cause__
        return new

    def _describe(self) -> str:
        return super().__str__()

    def __str__(self) -> str:
        desc = self._describe()
        parts = []
        if self._device is not None:
            parts.append("device %s" % self._device)
        if self._entry is not None:
            parts.append("entry '%s'" % self._entry)
        if parts:
            if desc:
                desc += " "
            desc += "(%s)" % ("; ".join(parts))
        return desc

class InternalError(Error):
    """@brief Internal consistency or logic error.

    This error indicates that something has happened that shouldn't be possible.
    """
    pass

class CommandError(Error):
    """@brief Raised when a command encounters an error."""
    pass

class ArchiveError(Error):
    """@brief The pack container is corrupt or cannot be read."""
    pass

class CorruptArchive(ArchiveError):
    """@brief The pack is not a valid zip archive or is missing its family descriptor."""
    pass

class EntryNotFound(ArchiveError):
    """@brief A named entry does not exist in the pack."""
    def __init__(self, path: str, **kwargs: Any) -> None:
        super().__init__("no such entry in pack: '%s'" % path, **kwargs)
        self._path = path

    @property
    def path(self) -> str:
        return self._path

class DescriptorError(Error):
    """@brief The family descriptor document is malformed or ambiguous.

    Errors of this class are document scoped and abort processing of the whole pack.
    """
    pass

class MalformedDescriptor(DescriptorError):
    """@brief A required element or attribute is missing or invalid.

    The `location` attribute is a slash separated path of the offending element within the
    document, for instance `family[STM32F4]/device[STM32F407VG]/memory[1]`.
    """
    def __init__(self, message: str, location: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self._location = location

    @property
    def location(self) -> Optional[str]:
        return self._location

    def _describe(self) -> str:
        desc = super()._describe()
        if self._location is not None:
            desc += " at %s" % self._location
        return desc

class DuplicateDevice(DescriptorError):
    """@brief The same device or variant name is declared more than once in one pack."""
    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__("duplicate device name '%s'" % name, **kwargs)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

class AlgorithmError(Error):
    """@brief A flash algorithm image cannot be extracted."""
    pass

class UnsupportedAlgorithmLayout(AlgorithmError):
    """@brief The flash algorithm image does not follow the expected layout."""
    pass

class MissingRequiredSymbol(AlgorithmError):
    """@brief One of the required flash algorithm entry points is not defined."""
    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__("missing required symbol '%s'" % name, **kwargs)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

class AmbiguousAlgorithmVariant(AlgorithmError):
    """@brief No single primary loadable code segment can be chosen."""
    pass

class ResolutionError(Error):
    """@brief A device variant's inherited attributes cannot be resolved."""
    pass

class UnresolvableRegionOverlap(ResolutionError):
    """@brief Two memory regions declared at the same depth overlap."""
    def __init__(self, regions: Sequence[str], **kwargs: Any) -> None:
        super().__init__("overlapping memory regions declared at the same level: %s"
                % ", ".join(regions), **kwargs)
        self._regions = tuple(regions)

    @property
    def regions(self) -> Sequence[str]:
        return self._regions

class NoCoreDefined(ResolutionError):
    """@brief No processor is declared for a device variant or any of its ancestors."""
    pass

class SynthesisError(Error):
    """@brief A target descriptor cannot be assembled."""
    pass

class MissingAlgorithmForRegion(SynthesisError):
    """@brief A programmable region refers to a flash algorithm that was not supplied."""
    def __init__(self, region: str, algorithm: Optional[str] = None, **kwargs: Any) -> None:
        if algorithm is not None:
            msg = "flash algorithm '%s' for region '%s' is not available" % (algorithm, region)
        else:
            msg = "no flash algorithm available for region '%s'" % region
        super().__init__(msg, **kwargs)
        self._region = region

    @property
    def region(self) -> str:
        return self._region
