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

from queue import Queue, Full, Empty

from tb_rule_harness.harness.constants import DEFAULT_SINK_MAX_RECORDS, DEFAULT_SINK_READ_RECORDS, \
    SINK_MAX_RECORDS_PARAMETER, SINK_READ_RECORDS_PARAMETER
from tb_rule_harness.harness.exceptions import DeliveryError
from tb_rule_harness.sinks.delivery_sink import DeliverySink, log


class MemorySink(DeliverySink):
    def __init__(self, config=None):
        config = config or {}
        self.__queue_len = config.get(SINK_MAX_RECORDS_PARAMETER, DEFAULT_SINK_MAX_RECORDS)
        self.__events_per_time = config.get(SINK_READ_RECORDS_PARAMETER, DEFAULT_SINK_READ_RECORDS)
        self.__events_queue = Queue(self.__queue_len)
        self.__event_pack = []
        log.debug("Memory sink created with following configuration: \nMax size: %i\n Read records per time: %i",
                  self.__queue_len, self.__events_per_time)

    def get_name(self):
        return "memory"

    def deliver(self, message):
        try:
            self.__events_queue.put_nowait(message.copy())
        except Full:
            log.error("Memory sink is full!")
            raise DeliveryError("Memory sink is full, %i message(s) are waiting" % self.__queue_len)

    def get_event_pack(self):
        try:
            if not self.__event_pack:
                self.__event_pack = [self.__events_queue.get_nowait()
                                     for _ in range(min(self.__events_per_time, self.__events_queue.qsize()))]
        except Empty:
            pass
        return self.__event_pack

    def event_pack_processing_done(self):
        self.__event_pack = []

    def size(self):
        return self.__events_queue.qsize()
