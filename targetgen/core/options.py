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

from typing import (Any, Dict, List, NamedTuple, Tuple, Union)

class OptionInfo(NamedTuple):
    name: str
    type: Union[type, Tuple[type, ...]]
    default: Any
    help: str

## @brief Definitions of the builtin options.
BUILTIN_OPTIONS = [
    OptionInfo('algo.blob_header', bool, True,
        "Prefix ARM flash algorithm instructions with a breakpoint header that halts the core when an "
        "algorithm function returns. Default is True."),
    OptionInfo('algo.default_ram_size', int, 16 * 1024,
        "Size of the RAM window assumed for a flash algorithm whose RAMstart is outside of any declared RAM "
        "region and which has no RAMsize. Default is 16 kB."),
    OptionInfo('algo.max_segment_size', int, 4 * 1024 * 1024,
        "Largest memory size accepted for a loadable segment of a flash algorithm image. Larger images are "
        "rejected before their segments are read. Default is 4 MB."),
    OptionInfo('algo.min_stack_size', int, 512,
        "Minimum number of bytes reserved for the flash algorithm stack. A second page buffer is only "
        "allocated if at least this much stack remains. Default is 512."),
    OptionInfo('algo.page_size', int, None,
        "Override the program page size for all flash algorithms."),
    OptionInfo('algo.sector_size', int, None,
        "Override the erase sector size for all flash algorithms."),
    OptionInfo('algo.segment_policy', str, "largest",
        "How to choose the primary code segment of a flash algorithm image with more than one executable "
        "segment. One of 'largest' (largest segment, lowest address on ties) or 'single' (reject such "
        "images). Default is 'largest'."),
    OptionInfo('config_file', str, None,
        "Path to custom config file."),
    OptionInfo('debug.traceback', bool, False,
        "Print tracebacks for exceptions."),
    OptionInfo('jobs', int, 0,
        "Number of worker threads used to generate device descriptors. 0 uses the number of CPUs."),
    OptionInfo('logging', (str, dict), None,
        "Logging configuration dictionary, or path to YAML file containing logging configuration."),
    OptionInfo('no_config', bool, False,
        "Do not use default config file."),
    OptionInfo('output_dir', str, "targets",
        "Directory into which generated target descriptors are written."),
    OptionInfo('output.group_by_family', bool, False,
        "Write one descriptor file per device family instead of one per variant."),
    OptionInfo('project_dir', str, None,
        "Path to the session's project directory. Defaults to the working directory when the targetgen "
        "tool was executed."),
    ]

## @brief The runtime dictionary of options.
OPTIONS_INFO: Dict[str, OptionInfo] = {}

def add_option_set(options: List[OptionInfo]) -> None:
    """@brief Merge a list of OptionInfo objects into OPTIONS_INFO."""
    OPTIONS_INFO.update({oi.name: oi for oi in options})

# Start with only builtin options.
add_option_set(BUILTIN_OPTIONS)
