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

from concurrent.futures import ThreadPoolExecutor
import threading
import pytest

from targetgen.core.exceptions import MissingRequiredSymbol
from targetgen.flash.algo_cache import AlgorithmCache

KEY = ("sha1:1234", "Flash/a.FLM")

class TestAlgorithmCache:
    def test_compute_once(self):
        cache = AlgorithmCache()
        calls = []
        def loader():
            calls.append(1)
            return "image"
        assert cache.get(KEY, loader) == "image"
        assert cache.get(KEY, loader) == "image"
        assert calls == [1]
        assert cache.compute_count == 1
        assert KEY in cache
        assert len(cache) == 1

    def test_keys_distinct(self):
        cache = AlgorithmCache()
        assert cache.get(("a", "x.FLM"), lambda: 1) == 1
        assert cache.get(("b", "x.FLM"), lambda: 2) == 2
        assert cache.get(("a", "y.FLM"), lambda: 3) == 3
        assert cache.compute_count == 3

    def test_error_cached(self):
        cache = AlgorithmCache()
        calls = []
        def loader():
            calls.append(1)
            raise MissingRequiredSymbol("ProgramPage")
        for _ in range(3):
            with pytest.raises(MissingRequiredSymbol):
                cache.get(KEY, loader)
        assert calls == [1]
        assert cache.compute_count == 1

    def test_concurrent(self):
        cache = AlgorithmCache()
        started = threading.Event()
        release = threading.Event()
        calls = []
        def loader():
            calls.append(1)
            started.set()
            release.wait(5)
            return object()

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(cache.get, KEY, loader) for _ in range(8)]
            assert started.wait(5)
            release.set()
            results = [f.result() for f in futures]

        assert len(calls) == 1
        assert cache.compute_count == 1
        assert all(r is results[0] for r in results)

    def test_clear(self):
        cache = AlgorithmCache()
        cache.get(KEY, lambda: 1)
        cache.clear()
        assert KEY not in cache
        assert cache.compute_count == 0
        assert cache.get(KEY, lambda: 2) == 2
