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

import math

import pytest

from tb_rule_harness.harness import capabilities
from tb_rule_harness.harness.capabilities import CAPABILITY_NAMES, build_capabilities


class TestCapabilitySet:
    def test_no_dangerous_builtins(self):
        for name in ('open', 'eval', 'exec', 'compile', '__import__', 'getattr', 'setattr', 'globals',
                     'locals', 'vars', 'type', 'input', 'print', 'breakpoint', 'memoryview'):
            assert name not in CAPABILITY_NAMES

    def test_every_execution_gets_its_own_mapping(self):
        first = build_capabilities()
        first['sqrt'] = None

        assert build_capabilities()['sqrt'] is math.sqrt


class TestBytesHelpers:
    def test_parse_bytes_to_int(self):
        data = bytes([0x09, 0xF6, 0x17, 0x70])

        assert capabilities.parse_bytes_to_int(data, 0, 2) == 2550
        assert capabilities.parse_bytes_to_int(data, 2, 2) == 6000
        assert capabilities.parse_bytes_to_int(bytes([0xFF, 0x38]), 0, 2, signed=True) == -200
        assert capabilities.parse_bytes_to_int(bytes([0x38, 0xFF]), 0, 2, big_endian=False, signed=True) == -200
        assert capabilities.parse_bytes_to_int(data) == 0x09F61770

    def test_parse_bytes_to_int_out_of_range(self):
        with pytest.raises(IndexError):
            capabilities.parse_bytes_to_int(bytes([0x09, 0xC4]), 2, 2)

    def test_parse_bytes_to_float(self):
        assert capabilities.parse_bytes_to_float(bytes.fromhex('41c80000')) == 25.0
        assert capabilities.parse_bytes_to_float(bytes.fromhex('0000c841'), big_endian=False) == 25.0
        with pytest.raises(ValueError):
            capabilities.parse_bytes_to_float(bytes(6), length=6)

    def test_hex_helpers(self):
        assert capabilities.hex_to_bytes('0x09F6') == bytes([0x09, 0xF6])
        assert capabilities.bytes_to_hex(bytes([0x09, 0xF6])) == '09f6'
        assert capabilities.parse_hex_to_int('FF38', signed=True) == -200

    def test_base64_helpers(self):
        assert capabilities.bytes_to_base64(b'tb') == 'dGI='
        assert capabilities.base64_to_bytes('dGI=') == b'tb'

    def test_string_helpers(self):
        assert capabilities.bytes_to_string(capabilities.string_to_bytes('temp')) == 'temp'
        assert capabilities.parse_int(' ff ', 16) == 255
        assert capabilities.parse_float('2.5') == 2.5


class TestNumericHelpers:
    def test_nan_and_finite(self):
        assert capabilities.is_nan(float('nan'))
        assert not capabilities.is_nan('nan')
        assert capabilities.is_finite(1.5)
        assert not capabilities.is_finite(float('inf'))

    def test_to_fixed(self):
        assert capabilities.to_fixed(25.456, 2) == 25.46
        assert capabilities.to_fixed('3.7') == 4.0


class TestDateHelpers:
    def test_parse_date_naive_is_utc(self):
        assert capabilities.parse_date('2024-01-01T00:00:00') == 1704067200000

    def test_parse_date_with_offset(self):
        assert capabilities.parse_date('2024-01-01T02:00:00+02:00') == 1704067200000

    def test_format_date(self):
        assert capabilities.format_date(1704067200000) == '2024-01-01T00:00:00.000+00:00'
        assert capabilities.format_date(1704067200000, '%Y-%m-%d') == '2024-01-01'

    def test_now_is_epoch_milliseconds(self):
        assert capabilities.now() > 1704067200000


class TestJsonPath:
    def test_json_path(self):
        body = {"sensor": {"values": [{"t": 21.5}]}}

        assert capabilities.json_path(body, 'sensor.values[0].t') == 21.5
        assert capabilities.json_path(body, '$.missing') is None
