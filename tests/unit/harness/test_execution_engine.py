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

from concurrent.futures import ThreadPoolExecutor
from time import monotonic

from tests.unit.BaseUnitTest import BaseUnitTest
from tb_rule_harness.harness.constant_enums import ErrorKind
from tb_rule_harness.harness.entities.execution_result import DecodedTelemetry, Failure, FilterDecision, \
    TransformedMessage
from tb_rule_harness.harness.entities.message import Message
from tb_rule_harness.harness.execution_engine import ExecutionEngine


class TestExecutionEngine(BaseUnitTest):
    @classmethod
    def setUpClass(cls):
        cls.engine = ExecutionEngine()

    def _filter(self, temperature, definition=None):
        return self.engine.execute(definition or self.filter_script(), {'temperature': temperature}, {}, 'TELEMETRY')

    def test_filter_bounds_are_exclusive(self):
        expectations = {25: False, 25.1: True, 50: True, 99.9: True, 100: False, -5: False}

        for temperature, passed in expectations.items():
            with self.subTest(temperature=temperature):
                self.assertEqual(self._filter(temperature), FilterDecision(passed))

    def test_inclusive_bounds_are_defined_by_script(self):
        # the engine has no opinion on range semantics, a script using <= accepts the bounds
        inclusive = self.filter_script('inclusiveFilter', "return 25 <= msg['temperature'] <= 100")

        self.assertEqual(self._filter(25, inclusive), FilterDecision(True))
        self.assertEqual(self._filter(100, inclusive), FilterDecision(True))
        self.assertEqual(self._filter(24.9, inclusive), FilterDecision(False))

    def test_filter_must_return_boolean(self):
        result = self.engine.execute(self.filter_script('truthy', "return 1"), {}, {}, 'TELEMETRY')

        self.assertIsInstance(result, Failure)
        self.assertEqual(result.error_kind, ErrorKind.CONTRACT_VIOLATION)

    def test_runtime_error_is_reported(self):
        result = self._filter(None, self.filter_script('missingKey', "return msg['humidity'] > 1"))

        self.assertEqual(result.error_kind, ErrorKind.RUNTIME_ERROR)
        self.assertIn("KeyError", result.detail)

    def test_syntax_error_is_runtime_error(self):
        result = self._filter(30, self.filter_script('broken', "return (25 <"))

        self.assertEqual(result.error_kind, ErrorKind.RUNTIME_ERROR)
        self.assertIn("SyntaxError", result.detail)

    def test_sandbox_violation_is_reported(self):
        result = self._filter(30, self.filter_script('escape', "import os\nreturn True"))

        self.assertEqual(result.error_kind, ErrorKind.SANDBOX_VIOLATION)

    def test_runaway_script_is_stopped_at_timeout(self):
        runaway = self.filter_script('runaway', "while True:\n    pass\nreturn True", timeout_ms=200)

        started = monotonic()
        result = self._filter(30, runaway)
        elapsed = monotonic() - started

        self.assertEqual(result.error_kind, ErrorKind.TIMEOUT)
        self.assertIn("200", result.detail)
        self.assertLess(elapsed, 5)

        # the engine stays usable after a timeout
        self.assertEqual(self._filter(30), FilterDecision(True))

    def test_execution_is_repeatable(self):
        first = self._filter(42)
        second = self._filter(42)

        self.assertEqual(first, second)

    def test_input_message_is_not_modified(self):
        message = Message(data={'temperature': 30}, metadata={'deviceName': 'A'}, msg_type='TELEMETRY')
        mutating = self.transform_script('mutating', "msg['temperature'] = 0\nmetadata['deviceName'] = 'B'\n"
                                                     "return {'msg': msg, 'metadata': metadata, 'msgType': msgType}")

        result = self.engine.execute_message(mutating, message)

        self.assertIsInstance(result, TransformedMessage)
        self.assertEqual(result.message.data, {'temperature': 0})
        self.assertEqual(result.metadata, {'deviceName': 'B'})
        self.assertEqual(message.data, {'temperature': 30})
        self.assertEqual(message.metadata, {'deviceName': 'A'})

    def test_transform_output_contract(self):
        malformed_sources = {
            'notMapping': "return [msg]",
            'missingMsgType': "return {'msg': msg, 'metadata': metadata}",
            'emptyMsgType': "return {'msg': msg, 'metadata': metadata, 'msgType': ''}",
            'nonStringMetadata': "return {'msg': msg, 'metadata': {'count': 1}, 'msgType': msgType}",
            'msgNotMapping': "return {'msg': 5, 'metadata': metadata, 'msgType': msgType}",
            'setValue': "msg['tags'] = {'a', 'b'}\nreturn {'msg': msg, 'metadata': metadata, 'msgType': msgType}",
            'bytesValue': "msg['raw'] = b'\\x01'\nreturn {'msg': msg, 'metadata': metadata, 'msgType': msgType}",
            'nestedHelper': "msg['items'] = [{'fn': sqrt}]\n"
                            "return {'msg': msg, 'metadata': metadata, 'msgType': msgType}",
            'nestedIntKey': "msg['nested'] = {1: 'a'}\nreturn {'msg': msg, 'metadata': metadata, 'msgType': msgType}",
        }

        for script_id, source in malformed_sources.items():
            with self.subTest(script_id=script_id):
                result = self.engine.execute(self.transform_script(script_id, source), {'a': 1}, {}, 'TELEMETRY')
                self.assertEqual(result.error_kind, ErrorKind.CONTRACT_VIOLATION)

    def test_transform_can_change_message_type(self):
        rename = self.transform_script('rename', "return {'msg': msg, 'metadata': metadata, "
                                                 "'msgType': 'POST_ATTRIBUTES_REQUEST'}")

        result = self.engine.execute(rename, {'a': 1}, {'k': 'v'}, 'POST_TELEMETRY_REQUEST')

        self.assertEqual(result.message.msg_type, 'POST_ATTRIBUTES_REQUEST')
        self.assertEqual(result.message.data, {'a': 1})

    def test_transform_may_return_nested_json_values(self):
        nested = self.transform_script('nested', "msg['readings'] = [{'t': 21.5, 'ok': True}, None, (1, 'a')]\n"
                                                 "return {'msg': msg, 'metadata': metadata, 'msgType': msgType}")

        result = self.engine.execute(nested, {}, {}, 'TELEMETRY')

        self.assertIsInstance(result, TransformedMessage, str(result))
        self.assertEqual(result.message.data['readings'][0], {'t': 21.5, 'ok': True})

    def test_unserializable_result_is_contract_violation(self):
        result = self._filter(30, self.filter_script('lambdaResult', "return lambda: True"))

        self.assertEqual(result.error_kind, ErrorKind.CONTRACT_VIOLATION)

    def test_decoder(self):
        result = self.engine.execute(self.decoder_script(), metadata={}, msg_type='TELEMETRY',
                                     payload=bytes([0x09, 0xF6, 0x17, 0x70]))

        self.assertEqual(result, DecodedTelemetry({'temperature': 25.5, 'humidity': 60.0}))

    def test_decoder_with_short_payload_fails(self):
        result = self.engine.execute(self.decoder_script(), metadata={}, msg_type='TELEMETRY',
                                     payload=bytes([0x09, 0xC4]))

        self.assertEqual(result.error_kind, ErrorKind.RUNTIME_ERROR)
        self.assertIn("IndexError", result.detail)

    def test_decoder_output_must_be_flat(self):
        nested = self.decoder_script('nested', "return {'values': {'temperature': 1}}")

        result = self.engine.execute(nested, payload=b'\x01')

        self.assertEqual(result.error_kind, ErrorKind.CONTRACT_VIOLATION)

    def test_decoder_requires_bytes(self):
        result = self.engine.execute(self.decoder_script(), payload='09F61770')

        self.assertEqual(result.error_kind, ErrorKind.CONTRACT_VIOLATION)

    def test_helpers_are_available_in_worker(self):
        helpers = self.transform_script('helpers', """
msg['ts'] = now()
msg['hex'] = bytes_to_hex(string_to_bytes('tb'))
msg['root'] = sqrt(16)
return {'msg': msg, 'metadata': metadata, 'msgType': msgType}
""")

        result = self.engine.execute(helpers, {}, {}, 'TELEMETRY')

        self.assertIsInstance(result, TransformedMessage, str(result))
        self.assertEqual(result.message.data['hex'], '7462')
        self.assertEqual(result.message.data['root'], 4.0)
        self.assertGreater(result.message.data['ts'], 0)

    def test_concurrent_executions_are_independent(self):
        temperatures = [10, 30, 60, 120, 26, 99]

        with ThreadPoolExecutor(max_workers=3) as executor:
            results = list(executor.map(self._filter, temperatures))

        self.assertListEqual([result.passed for result in results], [False, True, True, False, True, True])
