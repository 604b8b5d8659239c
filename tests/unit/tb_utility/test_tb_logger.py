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
from unittest import TestCase

from tb_rule_harness.tb_utility.tb_logger import TbLogger, TRACE_LOGGING_LEVEL


class TestTbLogger(TestCase):
    def setUp(self):
        self.logger = TbLogger('test_tb_logger')

    def test_errors_are_counted_once(self):
        before = TbLogger.get_errors_batch()['ALL_ERRORS_COUNT']

        self.logger.error("first")
        try:
            raise ValueError("second")
        except ValueError:
            self.logger.exception("second")

        batch = TbLogger.get_errors_batch()
        self.assertEqual(self.logger.errors, 2)
        self.assertEqual(batch['test_tb_logger_ERRORS_COUNT'], 2)
        self.assertEqual(batch['ALL_ERRORS_COUNT'], before + 2)

    def test_errors_batch_is_keyed_by_attr_name(self):
        logger = TbLogger('test_tb_logger_service', attr_name='TEST_SERVICE')

        logger.error("error")

        self.assertEqual(TbLogger.get_errors_batch()['TEST_SERVICE_ERRORS_COUNT'], 1)

    def test_trace_level(self):
        self.assertEqual(logging.getLevelName(TRACE_LOGGING_LEVEL), 'TRACE')

        with self.assertLogs(self.logger, level=TRACE_LOGGING_LEVEL) as logs:
            self.logger.trace("trace message")
        self.assertEqual(logs.records[0].levelno, TRACE_LOGGING_LEVEL)

