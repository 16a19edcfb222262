# targetgen
# Copyright (c) 2015-2020 Arm Limited
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

def align_down(value: int, multiple: int) -> int:
    """@brief Return value aligned down to multiple."""
    return value // multiple * multiple

def align_up(value: int, multiple: int) -> int:
    """@brief Return value aligned up to multiple."""
    return (value + multiple - 1) // multiple * multiple

def parse_int(value: str) -> int:
    """@brief Convert a decimal, hex, octal or binary string to an int.

    Numeric XML attributes in packs are written either in decimal or with a 0x prefix. Some packs
    use leading zeroes on decimal values, which Python's base detection rejects, so those are
    retried as plain decimal.

    @exception ValueError The string is not a valid integer.
    """
    value = value.strip()
    try:
        return int(value, base=0)
    except ValueError:
        if value.isdigit():
            return int(value, base=10)
        raise
