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

import logging
from threading import RLock

TRACE_LOGGING_LEVEL = 5
logging.addLevelName(TRACE_LOGGING_LEVEL, "TRACE")


class TbLogger(logging.Logger):
    ALL_ERRORS_COUNT = 0

    ERRORS_MUTEX = RLock()
    ERRORS_BATCH = {}

    def __init__(self, name, level=logging.NOTSET, attr_name=None):
        super(TbLogger, self).__init__(name=name, level=level)

        self.errors = 0

        if attr_name:
            self.attr_name = attr_name + '_ERRORS_COUNT'
        else:
            self.attr_name = self.name + '_ERRORS_COUNT'

    def trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE_LOGGING_LEVEL):
            self._log(TRACE_LOGGING_LEVEL, msg, args, **kwargs)

    def error(self, msg, *args, **kwargs):
        kwargs.setdefault('stacklevel', 2)
        if self.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, args, **kwargs)
        self._add_error()

    def exception(self, msg, *args, exc_info=True, **kwargs) -> None:
        kwargs.setdefault('stacklevel', 2)
        if self.isEnabledFor(logging.ERROR):
            self._log(logging.ERROR, msg, args, exc_info=exc_info, **kwargs)
        self._add_error()

    def _add_error(self):
        with TbLogger.ERRORS_MUTEX:
            TbLogger.ALL_ERRORS_COUNT += 1
            self.errors += 1
            self._update_errors_batch()

    def _update_errors_batch(self):
        TbLogger.ERRORS_BATCH[self.attr_name] = max(0, self.errors)

    @classmethod
    def get_errors_batch(cls):
        with cls.ERRORS_MUTEX:
            return {**cls.ERRORS_BATCH, 'ALL_ERRORS_COUNT': cls.ALL_ERRORS_COUNT}


# Loggers created before setLoggerClass still get trace()
logging.Logger.trace = TbLogger.trace
