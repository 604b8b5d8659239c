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

from tb_rule_harness.harness.constant_enums import ErrorKind


class RegistryError(Exception):
    error_kind = None

    def __init__(self, script_id, message=None):
        self.script_id = script_id
        super().__init__(message or "%s: %s" % (self.error_kind.value, script_id))


class DuplicateIdError(RegistryError):
    error_kind = ErrorKind.DUPLICATE_ID


class InvalidDefinitionError(RegistryError):
    error_kind = ErrorKind.INVALID_DEFINITION


class NotFoundError(RegistryError):
    error_kind = ErrorKind.NOT_FOUND


class DeliveryError(Exception):
    error_kind = ErrorKind.DELIVERY_ERROR


class RouteConfigurationError(Exception):
    def __init__(self, route_id, message):
        self.route_id = route_id
        super().__init__("Route '%s': %s" % (route_id, message))


class HarnessConfigurationError(Exception):
    pass
