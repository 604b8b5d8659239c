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

from dataclasses import dataclass
from os import path

from tb_rule_harness.harness.constant_enums import ScriptKind
from tb_rule_harness.harness.constants import DEFAULT_SCRIPT_TIMEOUT_MS, SCRIPT_ID_PARAMETER, \
    SCRIPT_KIND_PARAMETER, SCRIPT_SOURCE_PARAMETER, SCRIPT_SOURCE_FILE_PARAMETER, SCRIPT_TIMEOUT_PARAMETER


@dataclass(frozen=True)
class ScriptDefinition:
    script_id: str
    kind: ScriptKind
    source: str
    timeout_ms: float = DEFAULT_SCRIPT_TIMEOUT_MS

    @property
    def timeout_seconds(self):
        return self.timeout_ms / 1000.0

    @staticmethod
    def from_config(config: dict, config_dir=None, default_timeout_ms=DEFAULT_SCRIPT_TIMEOUT_MS):
        """
        Builds a definition from a config entry. The source is either inline ("source")
        or read from a file ("sourceFile"), relative paths are resolved against config_dir.
        """
        source = config.get(SCRIPT_SOURCE_PARAMETER)
        source_file = config.get(SCRIPT_SOURCE_FILE_PARAMETER)
        if source is None and source_file is not None:
            if config_dir is not None and not path.isabs(source_file):
                source_file = path.join(config_dir, source_file)
            with open(source_file, 'r', encoding='utf-8') as file:
                source = file.read()

        return ScriptDefinition(script_id=config.get(SCRIPT_ID_PARAMETER),
                                kind=ScriptKind.from_string(config.get(SCRIPT_KIND_PARAMETER)),
                                source=source,
                                timeout_ms=config.get(SCRIPT_TIMEOUT_PARAMETER, default_timeout_ms))

    def __str__(self):
        return f"ScriptDefinition(id={self.script_id}, kind={self.kind.value}, timeoutMs={self.timeout_ms})"
