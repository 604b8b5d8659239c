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

from dataclasses import dataclass, field
from time import time
from typing import List, Optional, Union
from uuid import uuid4

from tb_rule_harness.harness.constant_enums import Disposition, RunState
from tb_rule_harness.harness.entities.execution_result import ExecutionResult, Failure, TransformedMessage
from tb_rule_harness.harness.entities.message import Message


@dataclass
class StageOutcome:
    script_id: str
    stage: RunState
    result: ExecutionResult
    elapsed_ms: float

    def to_dict(self):
        return {
            "scriptId": self.script_id,
            "stage": self.stage.value,
            "result": self.result.to_dict(),
            "elapsedMs": round(self.elapsed_ms, 3)
        }


@dataclass
class PipelineRun:
    route_id: str
    raw_payload: Union[bytes, dict, None] = None
    input_message: Optional[Message] = None
    run_id: str = field(default_factory=lambda: uuid4().hex)
    started_ts: int = field(default_factory=lambda: int(time() * 1000))
    stages: List[StageOutcome] = field(default_factory=list)
    states: List[RunState] = field(default_factory=lambda: [RunState.RECEIVED])
    disposition: Optional[Disposition] = None
    output_message: Optional[Message] = None
    error: Optional[Failure] = None
    elapsed_ms: float = 0.0

    @property
    def state(self) -> RunState:
        return self.states[-1]

    @property
    def is_finished(self):
        return self.disposition is not None

    def transition(self, state: RunState):
        if self.states[-1] != state:
            self.states.append(state)

    def record(self, script_id, result: ExecutionResult, elapsed_ms):
        self.stages.append(StageOutcome(script_id, self.state, result, elapsed_ms))

    def finish(self, disposition: Disposition, output_message=None, error=None):
        self.disposition = disposition
        self.output_message = output_message
        self.error = error
        self.transition(RunState(disposition.value))

    @property
    def partial_outputs(self) -> List[Message]:
        """Outputs of the transform stages that succeeded, kept for diagnostics only."""
        return [outcome.result.message for outcome in self.stages if isinstance(outcome.result, TransformedMessage)]

    def to_dict(self):
        return {
            "runId": self.run_id,
            "routeId": self.route_id,
            "startedTs": self.started_ts,
            "elapsedMs": round(self.elapsed_ms, 3),
            "disposition": self.disposition.value if self.disposition else None,
            "states": [state.value for state in self.states],
            "input": self.input_message.to_dict() if self.input_message else None,
            "stages": [outcome.to_dict() for outcome in self.stages],
            "output": self.output_message.to_dict() if self.output_message else None,
            "error": self.error.to_dict() if self.error else None
        }
