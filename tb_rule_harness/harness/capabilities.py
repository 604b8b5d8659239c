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

"""
Helper functions available to rule scripts. Everything here is pure apart from now():
no network, file system or process access is reachable through these names.
"""

import math
import struct
from datetime import datetime, timezone
from time import time

import pybase64
from dateutil import parser as date_parser

from tb_rule_harness.tb_utility.tb_utility import TBUtility

SAFE_BUILTINS = {
    'abs': abs,
    'all': all,
    'any': any,
    'bool': bool,
    'bytes': bytes,
    'bytearray': bytearray,
    'chr': chr,
    'dict': dict,
    'divmod': divmod,
    'enumerate': enumerate,
    'filter': filter,
    'float': float,
    'hex': hex,
    'int': int,
    'isinstance': isinstance,
    'len': len,
    'list': list,
    'map': map,
    'max': max,
    'min': min,
    'ord': ord,
    'pow': pow,
    'range': range,
    'reversed': reversed,
    'round': round,
    'set': set,
    'sorted': sorted,
    'str': str,
    'sum': sum,
    'tuple': tuple,
    'zip': zip,
    'Exception': Exception,
    'ValueError': ValueError,
    'TypeError': TypeError,
    'KeyError': KeyError,
    'IndexError': IndexError,
    'ZeroDivisionError': ZeroDivisionError,
}


# Arithmetic

def is_nan(value):
    return isinstance(value, (int, float)) and math.isnan(value)


def is_finite(value):
    return isinstance(value, (int, float)) and math.isfinite(value)


def to_fixed(value, precision=0):
    return round(float(value), int(precision))


# Strings and bytes

def parse_int(value, radix=10):
    if isinstance(value, str):
        return int(value.strip(), radix)
    return int(value)


def parse_float(value):
    return float(value)


def parse_bytes_to_int(data, offset=0, length=None, big_endian=True, signed=False):
    if length is None:
        length = len(data) - offset
    if offset < 0 or length <= 0 or offset + length > len(data):
        raise IndexError("Cannot read %d byte(s) at offset %d from %d byte(s)" % (length, offset, len(data)))
    return int.from_bytes(bytes(data[offset:offset + length]), 'big' if big_endian else 'little', signed=signed)


def parse_bytes_to_float(data, offset=0, length=4, big_endian=True):
    if length not in (4, 8):
        raise ValueError("Float length must be 4 or 8 bytes, got %d" % length)
    if offset < 0 or offset + length > len(data):
        raise IndexError("Cannot read %d byte(s) at offset %d from %d byte(s)" % (length, offset, len(data)))
    fmt = ('>' if big_endian else '<') + ('f' if length == 4 else 'd')
    return struct.unpack_from(fmt, bytes(data[offset:offset + length]))[0]


def parse_hex_to_int(value, big_endian=True, signed=False):
    data = hex_to_bytes(value)
    return parse_bytes_to_int(data, 0, len(data), big_endian, signed)


def bytes_to_hex(data):
    return bytes(data).hex()


def hex_to_bytes(value):
    value = str(value).strip()
    if value.lower().startswith('0x'):
        value = value[2:]
    return bytes.fromhex(value)


def bytes_to_string(data, encoding='utf-8'):
    return bytes(data).decode(encoding)


def string_to_bytes(value, encoding='utf-8'):
    return str(value).encode(encoding)


def base64_to_bytes(value):
    return pybase64.b64decode(value, validate=True)


def bytes_to_base64(data):
    return pybase64.b64encode(bytes(data)).decode('ascii')


def json_path(body, expression):
    return TBUtility.get_value(expression, body)


# Date and time

def now():
    return int(time() * 1000)


def parse_date(value, dayfirst=False, yearfirst=False):
    """Returns epoch milliseconds; naive timestamps are treated as UTC."""
    parsed = date_parser.parse(str(value), dayfirst=dayfirst, yearfirst=yearfirst)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def format_date(ts, fmt=None):
    moment = datetime.fromtimestamp(ts / 1000.0, tz=timezone.utc)
    if fmt is None:
        return moment.isoformat(timespec='milliseconds')
    return moment.strftime(fmt)


HELPERS = {
    'sqrt': math.sqrt,
    'floor': math.floor,
    'ceil': math.ceil,
    'log': math.log,
    'exp': math.exp,
    'is_nan': is_nan,
    'is_finite': is_finite,
    'to_fixed': to_fixed,
    'parse_int': parse_int,
    'parse_float': parse_float,
    'parse_hex_to_int': parse_hex_to_int,
    'parse_bytes_to_int': parse_bytes_to_int,
    'parse_bytes_to_float': parse_bytes_to_float,
    'bytes_to_hex': bytes_to_hex,
    'hex_to_bytes': hex_to_bytes,
    'bytes_to_string': bytes_to_string,
    'string_to_bytes': string_to_bytes,
    'base64_to_bytes': base64_to_bytes,
    'bytes_to_base64': bytes_to_base64,
    'json_path': json_path,
    'now': now,
    'parse_date': parse_date,
    'format_date': format_date,
}

def build_capabilities():
    """Fresh capability mapping for one script execution."""
    return {**SAFE_BUILTINS, **HELPERS}


CAPABILITY_NAMES = frozenset(build_capabilities())
