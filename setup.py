# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
A setuptools based setup module.
See:
https://packaging.python.org/guides/distributing-packages-using-setuptools/
https://github.com/pypa/sampleproject
"""

# Always prefer setuptools over distutils
from setuptools import setup, find_packages
import os
import re

here = os.path.abspath(os.path.dirname(__file__))

# the version is read from the sources, the package cannot be imported before being installed
with open(os.path.join(here, 'src', 'FlowCalEngine', '__version__.py')) as f:
    __FlowCalEngine_VERSION__ = re.search(r'__FlowCalEngine_VERSION__ = "(.+)"', f.read()).group(1)

long_description = """# FlowCalEngine

AC power flow engine for transmission networks: Newton-Raphson (and Newton-Krylov or
bounded non linear least squares) over a sparse equation system, wrapped in outer loops for
the distributed slack, the reactive power limits, the area interchange control, the automation
systems, the tap discretization and the secondary voltage control.

## Installation

pip install FlowCalEngine
"""

description = 'FlowCalEngine is an AC power flow engine with control outer loops'

pkgs_to_exclude = ['docs', 'tests']

packages = find_packages(where='src', exclude=pkgs_to_exclude)

# find_packages only excludes top level names, nested test packages are filtered here
packages2 = list()
for package in packages:
    elms = package.split('.')
    excluded = False
    for exclude in pkgs_to_exclude:
        if exclude in elms:
            excluded = True

    if not excluded:
        packages2.append(package)

dependencies = ['setuptools>=41.0.1',
                "numpy>=1.26",
                "scipy>=1.12",  # gmres with rtol
                "networkx>=2.1",
                "pandas>=2.2.3",
                "matplotlib>=2.1.1",
                "numba>=0.60",  # to compile routines natively
                ]

extras_require = {
    'test': ["pytest>=7.2"],
    'pardiso': ["pypardiso"],  # optional sparse solver
}

setup(
    name='FlowCalEngine',  # Required
    version=__FlowCalEngine_VERSION__,  # Required
    license='MPL2',
    description=description,  # Optional
    long_description=long_description,  # Optional
    long_description_content_type='text/markdown',  # Optional (see note above)
    url='https://github.com/FlowCal/FlowCalEngine',  # Optional
    author='FlowCal developers',  # Optional
    classifiers=[
        'License :: OSI Approved :: Mozilla Public License 2.0 (MPL 2.0)',
        'Programming Language :: Python :: 3.9',
    ],
    keywords='power systems power flow',  # Optional
    packages=packages2,  # Required
    package_dir={'': 'src'},
    include_package_data=True,
    python_requires='>=3.9',
    install_requires=dependencies,
    extras_require=extras_require,
)
