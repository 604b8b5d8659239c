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

from logging import getLogger, setLoggerClass
from os import path

from cachetools import TTLCache
from jsonpath_rw import parse
from orjson import JSONDecodeError, loads
from simplejson import load
from yaml import safe_load

from tb_rule_harness.tb_utility.tb_logger import TbLogger

setLoggerClass(TbLogger)
log = getLogger("service")


class TBUtility:

    JSONPATH_EXPRESSION_CACHE = TTLCache(maxsize=10000, ttl=30)

    # Data conversion methods

    @staticmethod
    def decode(payload):
        """Returns the JSON content of the payload, or None if it is not valid UTF-8 JSON."""
        try:
            if isinstance(payload, bytearray):
                payload = bytes(payload)
            return loads(payload)
        except (JSONDecodeError, TypeError):
            return None

    @staticmethod
    def get_value(expression, body=None):
        if not expression or body is None:
            return None
        if isinstance(body, dict) and expression in body:
            return body[expression]
        if not expression.startswith('$'):
            expression = '$.' + expression
        try:
            jsonpath_expression = TBUtility.JSONPATH_EXPRESSION_CACHE.get(expression)
            if jsonpath_expression is None:
                jsonpath_expression = parse(expression)
                TBUtility.JSONPATH_EXPRESSION_CACHE[expression] = jsonpath_expression
            jsonpath_match = jsonpath_expression.find(body)
        except Exception as e:
            log.debug("Failed to resolve expression %s: %s", expression, e)
            return None
        if jsonpath_match:
            return jsonpath_match[0].value
        return None

    @staticmethod
    def get_data_size(data) -> int:
        if isinstance(data, (bytes, bytearray)):
            return len(data)
        return len(str(data))

    # Service methods

    @staticmethod
    def load_file(path_to_file):
        """Loads a JSON or YAML file, chosen by extension."""
        extension = path.splitext(path_to_file)[1].lower()
        with open(path_to_file, 'r', encoding='utf-8') as target_file:
            if extension in ('.yaml', '.yml'):
                return safe_load(target_file) or {}
            return load(target_file)
