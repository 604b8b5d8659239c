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

from tests.unit.BaseUnitTest import BaseUnitTest
from tb_rule_harness.harness.constant_enums import ScriptKind
from tb_rule_harness.harness.sandbox import ScriptSandbox


class TestScriptSandbox(BaseUnitTest):
    def setUp(self):
        self.sandbox = ScriptSandbox(cache_size=10)

    def assertViolation(self, source, expected_fragment, kind=ScriptKind.TRANSFORM):
        prepared = self.sandbox.prepare(kind, source)
        self.assertFalse(prepared.is_runnable, source)
        self.assertIsNotNone(prepared.violation, source)
        self.assertIn(expected_fragment, prepared.violation)

    def test_valid_script_is_wrapped(self):
        prepared = self.sandbox.prepare(ScriptKind.FILTER, "    return msg['temperature'] > 25\n")

        self.assertTrue(prepared.is_runnable)
        self.assertTrue(prepared.wrapped_source.startswith("def __tb_script__(msg, metadata, msgType):\n"))
        self.assertIn("\n    return msg['temperature'] > 25", prepared.wrapped_source)

    def test_decoder_receives_payload_binding(self):
        prepared = self.sandbox.prepare(ScriptKind.DECODER, "return {'size': len(payload)}")

        self.assertTrue(prepared.is_runnable)
        self.assertIn("(payload, metadata, msgType)", prepared.wrapped_source)

    def test_payload_is_not_bound_for_filters(self):
        self.assertViolation("return len(payload) > 0", "'payload'", kind=ScriptKind.FILTER)

    def test_imports_are_refused(self):
        self.assertViolation("import os\nreturn msg", "import statements")
        self.assertViolation("from os import path\nreturn msg", "import statements")

    def test_dunder_names_are_refused(self):
        self.assertViolation("return __import__('os')", "'__import__'")
        self.assertViolation("return __builtins__", "'__builtins__'")

    def test_private_attributes_are_refused(self):
        self.assertViolation("return ().__class__.__bases__[0].__subclasses__()", "'__")
        self.assertViolation("return msg._data", "'_data'")

    def test_introspection_attributes_are_refused(self):
        self.assertViolation("return '{0.__class__}'.format(msg)", "'format'")
        self.assertViolation("f = lambda: 1\nreturn f.func_globals", "'func_globals'")

    def test_names_outside_capabilities_are_refused(self):
        for source in ("return open('/etc/passwd').read()", "return eval('1')", "return getattr(msg, 'x')",
                       "return globals()", "print(msg)\nreturn msg", "return type(msg)"):
            with self.subTest(source=source):
                self.assertViolation(source, "not available in the script context")

    def test_forbidden_statements(self):
        self.assertViolation("global counter\nreturn msg", "global statements")
        self.assertViolation("class A:\n    pass\nreturn msg", "class definitions")
        self.assertViolation("with msg:\n    pass\nreturn msg", "with statements")
        self.assertViolation("yield msg", "generators")

    def test_locally_bound_names_are_allowed(self):
        source = """
total = 0
for key, value in msg.items():
    if isinstance(value, (int, float)):
        total += value
squares = [item * item for item in range(3)]
def double(x):
    return x * 2
try:
    ratio = 1 / total
except ZeroDivisionError as e:
    ratio = None
return {'msg': {'total': double(total), 'squares': squares, 'ratio': ratio}, 'metadata': metadata,
        'msgType': msgType}
"""
        prepared = self.sandbox.prepare(ScriptKind.TRANSFORM, source)

        self.assertTrue(prepared.is_runnable, prepared.violation)

    def test_syntax_error_reports_script_line(self):
        prepared = self.sandbox.prepare(ScriptKind.FILTER, "x = 1\nreturn (")

        self.assertFalse(prepared.is_runnable)
        self.assertIsNone(prepared.violation)
        self.assertIn("SyntaxError", prepared.syntax_error)

    def test_prepared_script_is_cached(self):
        first = self.sandbox.prepare(ScriptKind.FILTER, "return True")
        second = self.sandbox.prepare(ScriptKind.FILTER, "return True")

        self.assertIs(first, second)

    def test_loaded_function_sees_only_capabilities(self):
        prepared = self.sandbox.prepare(ScriptKind.FILTER, "return isinstance(msg, dict)")
        script_function = ScriptSandbox.load_function(prepared.wrapped_source, 'check')

        self.assertTrue(script_function(msg={}, metadata={}, msgType='T'))
        self.assertNotIn('open', script_function.__globals__['__builtins__'])
        self.assertNotIn('__import__', script_function.__globals__['__builtins__'])

    def test_concurrent_prepare_with_expiring_cache(self):
        sandbox = ScriptSandbox(cache_size=2, cache_ttl=0.0001)
        sources = ["return %d > 1" % value for value in range(8)]

        def prepare_many(offset):
            errors = []
            for index in range(2000):
                try:
                    prepared = sandbox.prepare(ScriptKind.FILTER, sources[(index + offset) % len(sources)])
                    if not prepared.is_runnable:
                        errors.append(prepared.violation)
                except Exception as e:
                    errors.append(repr(e))
            return errors

        with ThreadPoolExecutor(max_workers=8) as executor:
            errors = [error for result in executor.map(prepare_many, range(8)) for error in result]

        self.assertListEqual(errors, [])
