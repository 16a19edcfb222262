# targetgen
# Copyright (c) 2019-2020 Arm Limited
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

import pytest

from targetgen.core.options_manager import OptionsManager
from targetgen.core.options import OPTIONS_INFO

@pytest.fixture(scope='function')
def mgr():
    return OptionsManager()

@pytest.fixture(scope='function')
def layer1():
    return {
            'foo': 1,
            'bar': 2,
            'baz': 3,
            'algo.blob_header': False,
        }

@pytest.fixture(scope='function')
def layer2():
    return {
            'baz': 33,
            'dogcow': 777,
        }

class TestOptionsManager(object):
    def test_defaults(self, mgr):
        assert mgr.get('algo.blob_header') == OPTIONS_INFO['algo.blob_header'].default
        assert mgr['algo.blob_header'] == OPTIONS_INFO['algo.blob_header'].default
        assert 'algo.blob_header' not in mgr
        assert mgr.get_default('algo.blob_header') == OPTIONS_INFO['algo.blob_header'].default

    def test_unknown_default(self, mgr):
        assert mgr.get('dogcow') is None

    def test_a(self, mgr, layer1):
        mgr.add_front(layer1)
        assert 'algo.blob_header' in mgr
        assert mgr.get('algo.blob_header') == False

    def test_b(self, mgr, layer1):
        mgr.add_front(layer1)
        mgr.add_front({'algo.blob_header': True})
        assert 'algo.blob_header' in mgr
        assert mgr.get('algo.blob_header') == True

    def test_c(self, mgr, layer1):
        mgr.add_front(layer1)
        mgr.add_back({'algo.blob_header': True})
        assert 'algo.blob_header' in mgr
        assert mgr.get('algo.blob_header') == False

    def test_none_value(self, mgr):
        mgr.add_back({'algo.blob_header': None})
        assert 'algo.blob_header' not in mgr
        assert mgr.get('algo.blob_header') == True

    def test_convert_double_underscore(self, mgr):
        mgr.add_back({'debug__traceback': False})
        assert 'debug.traceback' in mgr
        assert mgr.get('debug.traceback') == False

    def test_set(self, mgr, layer1):
        mgr.add_front(layer1)
        mgr.set('buzz', 1234)
        assert mgr['buzz'] == 1234
        mgr.add_front({'buzz': 4321})
        assert mgr.get('buzz') == 4321

    def test_update(self, mgr, layer1, layer2):
        mgr.add_front(layer1)
        mgr.add_front(layer2)
        mgr.update({'foo': 888, 'debug__traceback': False})
        assert mgr['foo'] == 888
        assert mgr.get('debug.traceback') == False
        assert mgr['baz'] == 33

    def test_update_empty(self, mgr):
        mgr.update({'jobs': 4})
        assert mgr.get('jobs') == 4
