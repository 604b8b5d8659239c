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

from enum import Enum


class ScriptKind(Enum):
    FILTER = "filter"
    TRANSFORM = "transform"
    DECODER = "decoder"

    @classmethod
    def from_string(cls, value):
        if isinstance(value, ScriptKind):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError("Unknown script kind: %r" % (value,))


class ErrorKind(Enum):
    DUPLICATE_ID = "DuplicateId"
    INVALID_DEFINITION = "InvalidDefinition"
    NOT_FOUND = "NotFound"
    SANDBOX_VIOLATION = "SandboxViolation"
    TIMEOUT = "Timeout"
    RUNTIME_ERROR = "RuntimeError"
    CONTRACT_VIOLATION = "ContractViolation"
    DELIVERY_ERROR = "DeliveryError"
    CANCELLED = "Cancelled"


class RunState(Enum):
    RECEIVED = "Received"
    DECODING = "Decoding"
    FILTERING = "Filtering"
    TRANSFORMING = "Transforming"
    ENRICHING = "Enriching"
    DELIVERING = "Delivering"
    DELIVERED = "Delivered"
    DROPPED = "Dropped"
    ERRORED = "Errored"


class Disposition(Enum):
    DELIVERED = "Delivered"
    DROPPED = "Dropped"
    ERRORED = "Errored"
