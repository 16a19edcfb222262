# targetgen
# Copyright (c) 2020 Arm Limited
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

import re
from typing import Sequence

_INT_SUFFIX_RE = re.compile(r'[0-9]+$')

def uniquify_name(name: str, others: Sequence[str]) -> str:
    """@brief Ensure the given name is unique amongst the other provided names.

    If the `name` parameter is not unique, an integer will be appended to it. If the name already ends in an
    integer, that value will be incremented by 1.

    @param name The name to uniqify.
    @param others Sequence of other names to compare against.
    @return A string guaranteed to not be the same as any string contained in `others`.
    """
    while name in others:
        # Look for an integer at the end.
        matches = list(_INT_SUFFIX_RE.finditer(name))
        if len(matches):
            match = matches[0]
            u_value = int(match.group())
            name = name[:match.start()]
        else:
            name += "_"
            u_value = 0

        # Update the name with the trailing int incremented.
        name += str(u_value + 1)

    return name

def algorithm_name_from_path(path: str) -> str:
    """@brief Derive a flash algorithm identifier from its path within a pack.

    The file stem is lowercased and whitespace is replaced with underscores, so that
    `Flash/STM32F4xx 1024.FLM` becomes `stm32f4xx_1024`.
    """
    stem = path.replace('\\', '/').rsplit('/', 1)[-1]
    if '.' in stem:
        stem = stem.rsplit('.', 1)[0]
    return re.sub(r'\s+', '_', stem.strip()).lower()
