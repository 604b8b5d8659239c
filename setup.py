# -*- coding: utf-8 -*-

#     Copyright 2025. ThingsBoard
#
#     Licensed under the Apache License, Version 2.0 (the "License");
#     you may not use this file except in compliance with the License.
#     You may obtain a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#     Unless required by applicable law or agreed to in writing, software
#     distributed under the License is distributed on an "AS IS" BASIS,
#     WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#     See the License for the specific language governing permissions and
#     limitations under the License.

from setuptools import setup
from os import path

from tb_rule_harness import version

current_directory = path.abspath(path.dirname(__file__))
with open(path.join(current_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    version=version.VERSION,
    name="tb-rule-harness",
    author="ThingsBoard",
    author_email="info@thingsboard.io",
    license="Apache Software License (Apache Software License 2.0)",
    description="Sandboxed harness for ThingsBoard rule scripts: registry, isolated execution and message pipeline.",
    url="https://github.com/thingsboard/tb-rule-harness",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.8",
    packages=['tb_rule_harness', 'tb_rule_harness.harness',
              'tb_rule_harness.harness.entities', 'tb_rule_harness.harness.statistics',
              'tb_rule_harness.sinks', 'tb_rule_harness.tb_utility'
              ],
    package_data={
        'tb_rule_harness': ['config/*.json', 'config/scripts/*.tbscript']
    },
    install_requires=[
        'setuptools',
        'jsonpath-rw',
        'PyYAML',
        'orjson',
        'pybase64',
        'simplejson',
        'termcolor',
        'cachetools',
        'python-dateutil'
    ],
    extras_require={
        'test': ['pytest']
    },
    download_url='https://github.com/thingsboard/tb-rule-harness/archive/%s.tar.gz' % version.VERSION,
    entry_points={
        'console_scripts': [
            'tb-rule-harness = tb_rule_harness.tb_harness:main'
        ]
    })
