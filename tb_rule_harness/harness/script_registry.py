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

from logging import getLogger
from typing import Dict, Optional

from tb_rule_harness.harness.constant_enums import ScriptKind
from tb_rule_harness.harness.entities.script_definition import ScriptDefinition
from tb_rule_harness.harness.exceptions import DuplicateIdError, InvalidDefinitionError, NotFoundError
from tb_rule_harness.tb_utility.rw_lock import ReadWriteLock

log = getLogger("registry")


class ScriptRegistry:
    """
    Named script definitions. Lookups may run concurrently, registration and
    unregistration are serialized.
    """

    def __init__(self):
        self.__definitions: Dict[str, ScriptDefinition] = {}
        self.__lock = ReadWriteLock()

    def register(self, definition: ScriptDefinition):
        self.validate(definition)
        with self.__lock.write_locked():
            if definition.script_id in self.__definitions:
                raise DuplicateIdError(definition.script_id,
                                       "Script with id '%s' is already registered" % definition.script_id)
            self.__definitions[definition.script_id] = definition
        log.debug("Registered %s", definition)

    def lookup(self, script_id) -> Optional[ScriptDefinition]:
        with self.__lock.read_locked():
            return self.__definitions.get(script_id)

    def unregister(self, script_id):
        with self.__lock.write_locked():
            if script_id not in self.__definitions:
                raise NotFoundError(script_id, "Script with id '%s' is not registered" % script_id)
            del self.__definitions[script_id]
        log.debug("Unregistered script %s", script_id)

    def get_ids(self):
        with self.__lock.read_locked():
            return list(self.__definitions)

    def __contains__(self, script_id):
        return self.lookup(script_id) is not None

    def __len__(self):
        with self.__lock.read_locked():
            return len(self.__definitions)

    @staticmethod
    def validate(definition):
        script_id = getattr(definition, 'script_id', None)
        errors = []
        if not isinstance(definition, ScriptDefinition):
            errors.append('not a script definition')
        else:
            if not isinstance(script_id, str) or not script_id.strip():
                errors.append('id is empty')
            if not isinstance(definition.kind, ScriptKind):
                errors.append('unknown kind %r' % (definition.kind,))
            if not isinstance(definition.source, str) or not definition.source.strip():
                errors.append('source is empty')
            timeout = definition.timeout_ms
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or not timeout > 0:
                errors.append('timeout must be positive, got %r' % (timeout,))

        if errors:
            log.error("Found errors: %s in script definition %s", errors, script_id)
            raise InvalidDefinitionError(script_id,
                                         "Invalid script definition '%s': %s" % (script_id, ', '.join(errors)))
