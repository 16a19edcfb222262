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

from concurrent.futures import Future
import logging
import threading
from typing import (Callable, Dict, Hashable, Tuple)

from .flash_algo import FlashAlgoImage

LOG = logging.getLogger(__name__)

## Cache key of (archive identity, entry path).
CacheKey = Tuple[Hashable, str]

class AlgorithmCache:
    """@brief Per-run cache of parsed flash algorithm images.

    Images are keyed by the identity of the archive they came from and their entry path. The first
    caller for a key installs a Future under the lock and parses the image outside of it; concurrent
    callers for the same key wait on that Future. An image that fails to parse stores the exception,
    so every device referencing it gets the same error without parsing again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._futures: Dict[CacheKey, "Future[FlashAlgoImage]"] = {}
        self._compute_count = 0

    @property
    def compute_count(self) -> int:
        """@brief Number of times an image has actually been parsed."""
        return self._compute_count

    def get(self, key: CacheKey, loader: Callable[[], FlashAlgoImage]) -> FlashAlgoImage:
        """@brief Return the image for a key, calling `loader` only if no other caller has.

        @exception Error Any exception raised by `loader` is raised to every caller for the key.
        """
        with self._lock:
            future = self._futures.get(key)
            is_owner = future is None
            if future is None:
                future = Future()
                self._futures[key] = future
                self._compute_count += 1

        if is_owner:
            LOG.debug("parsing flash algorithm %s", key[1])
            try:
                future.set_result(loader())
            except Exception as err:
                future.set_exception(err)

        return future.result()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._futures

    def __len__(self) -> int:
        with self._lock:
            return len(self._futures)

    def clear(self) -> None:
        with self._lock:
            self._futures.clear()
            self._compute_count = 0
