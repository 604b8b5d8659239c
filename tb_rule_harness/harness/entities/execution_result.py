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
from typing import Any, Dict

from tb_rule_harness.harness.constant_enums import ErrorKind
from tb_rule_harness.harness.entities.message import Message


class ExecutionResult:
    is_failure = False

    def to_dict(self):
        raise NotImplementedError


@dataclass(frozen=True)
class FilterDecision(ExecutionResult):
    passed: bool

    def to_dict(self):
        return {"type": "FilterDecision", "passed": self.passed}


@dataclass(frozen=True)
class TransformedMessage(ExecutionResult):
    message: Message

    @property
    def metadata(self):
        return self.message.metadata

    def to_dict(self):
        return {"type": "TransformedMessage", **self.message.to_dict()}


@dataclass(frozen=True)
class DecodedTelemetry(ExecutionResult):
    telemetry: Dict[str, Any]

    def to_dict(self):
        return {"type": "DecodedTelemetry", "telemetry": self.telemetry}


@dataclass(frozen=True)
class Failure(ExecutionResult):
    error_kind: ErrorKind
    detail: str = ''

    is_failure = True

    def to_dict(self):
        return {"type": "Failure", "errorKind": self.error_kind.value, "detail": self.detail}

    def __str__(self):
        return f"Failure({self.error_kind.value}: {self.detail})"
