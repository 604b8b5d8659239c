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

from os import makedirs, path
from threading import Lock

from orjson import dumps, OPT_APPEND_NEWLINE

from tb_rule_harness.harness.constants import SINK_PATH_PARAMETER
from tb_rule_harness.harness.exceptions import DeliveryError, HarnessConfigurationError
from tb_rule_harness.sinks.delivery_sink import DeliverySink, log


class FileSink(DeliverySink):
    """Appends every delivered message to a JSON lines file."""

    def __init__(self, config):
        self.__path = config.get(SINK_PATH_PARAMETER)
        if not self.__path:
            raise HarnessConfigurationError("File sink requires '%s' parameter" % SINK_PATH_PARAMETER)
        self.__lock = Lock()
        directory = path.dirname(path.abspath(self.__path))
        if not path.exists(directory):
            makedirs(directory)
        log.debug("File sink writes to %s", self.__path)

    def get_name(self):
        return "file"

    @property
    def path(self):
        return self.__path

    def deliver(self, message):
        try:
            line = dumps(message.to_dict(), option=OPT_APPEND_NEWLINE)
        except TypeError as e:
            raise DeliveryError("Message can not be serialized: %s" % e)
        try:
            with self.__lock, open(self.__path, 'ab') as file:
                file.write(line)
        except OSError as e:
            log.error("Failed to write message to %s: %s", self.__path, e)
            raise DeliveryError("Failed to write message to %s: %s" % (self.__path, e))
