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

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict

from tb_rule_harness.harness.constants import MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING


@dataclass
class Message:
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, str] = field(default_factory=dict)
    msg_type: str = ''

    def copy(self) -> 'Message':
        return Message(data=deepcopy(self.data), metadata=dict(self.metadata), msg_type=self.msg_type)

    def to_dict(self):
        return {
            MSG_BINDING: self.data,
            METADATA_BINDING: self.metadata,
            MSG_TYPE_BINDING: self.msg_type
        }

    def __str__(self):
        return f"Message(msgType={self.msg_type}, msg={self.data}, metadata={self.metadata})"
