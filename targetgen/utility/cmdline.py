# targetgen
# Copyright (c) 2015-2020 Arm Limited
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

import logging
from typing import (Any, Dict, Iterable, Optional)

from ..core.options import OPTIONS_INFO

LOG = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
_BOOL_VALUES = _TRUE_VALUES + ("false", "0", "no", "off")

def convert_session_options(option_list: Optional[Iterable[str]]) -> Dict[str, Any]:
    """@brief Convert a list of `name=value` option settings to a dictionary.

    Unknown options and values that cannot be converted to the option's type are skipped with a
    warning. A boolean option may be given without a value to set it, or with a `no-` prefix to
    clear it.
    """
    options: Dict[str, Any] = {}
    if option_list is None:
        return options
    for o in option_list:
        if '=' in o:
            name, value = o.split('=', 1)
            name = name.strip().lower()
            value = value.strip()
        else:
            name = o.strip().lower()
            value = None

        # Check for and strip "no-" prefix before we validate the option name.
        if (value is None) and (name.startswith('no-')):
            name = name[3:]
            had_no_prefix = True
        else:
            had_no_prefix = False

        try:
            info = OPTIONS_INFO[name]
        except KeyError:
            LOG.warning("ignoring unknown option '%s'", name)
            continue

        if value is None:
            if info.type is bool:
                options[name] = not had_no_prefix
            else:
                LOG.warning("non-boolean option '%s' requires a value", name)
            continue

        if info.type is bool:
            if value.lower() not in _BOOL_VALUES:
                LOG.warning("invalid value for option '%s'", name)
                continue
            options[name] = value.lower() in _TRUE_VALUES
        elif info.type is int:
            try:
                options[name] = int(value, base=0)
            except ValueError:
                LOG.warning("invalid value for option '%s'", name)
        else:
            options[name] = value
    return options
