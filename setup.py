# targetgen
# Copyright (c) 2012-2020 Arm Limited
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

import os
from setuptools import (find_packages, setup)
from pathlib import Path

# Get the directory containing this setup.py so relative paths below work from any cwd.
SCRIPT_DIR = Path(__file__).parent.resolve()
os.chdir(SCRIPT_DIR)

# Read the version without importing the package.
version_ns = {}
exec((SCRIPT_DIR / "targetgen" / "__init__.py").read_text(), version_ns)

setup(
    name="targetgen",
    version=version_ns['__version__'],
    description="Target descriptor generator for CMSIS device family packs",
    license="Apache-2.0",
    python_requires=">=3.8",
    packages=find_packages(exclude=["test", "test.*"]),
    install_requires=[
        "colorama<1.0",
        "intervaltree>=3.0.2,<4.0",
        "prettytable>=2.0,<4.0",
        "pyelftools<1.0",
        "pyyaml>=6.0,<7.0",
        "typing-extensions>=4.0,<5.0",
        ],
    extras_require={
        "test": [
            "pytest>=6.2",
            ],
        },
    entry_points={
        "console_scripts": [
            "targetgen = targetgen.__main__:main",
            ],
        },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Embedded Systems",
        ],
)
