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

import ast
from dataclasses import dataclass
from logging import getLogger
from textwrap import dedent, indent
from threading import Lock
from typing import Optional

from cachetools import TTLCache

from tb_rule_harness.harness.capabilities import CAPABILITY_NAMES, build_capabilities
from tb_rule_harness.harness.constant_enums import ScriptKind
from tb_rule_harness.harness.constants import MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING, PAYLOAD_BINDING, \
    DEFAULT_COMPILED_CACHE_SIZE, DEFAULT_COMPILED_CACHE_TTL

log = getLogger("engine")

SCRIPT_FUNCTION_NAME = '__tb_script__'

SCRIPT_PARAMETERS = {
    ScriptKind.FILTER: (MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING),
    ScriptKind.TRANSFORM: (MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING),
    ScriptKind.DECODER: (PAYLOAD_BINDING, METADATA_BINDING, MSG_TYPE_BINDING),
}

FORBIDDEN_NODES = {
    ast.Import: 'import statements',
    ast.ImportFrom: 'import statements',
    ast.Global: 'global statements',
    ast.Nonlocal: 'nonlocal statements',
    ast.ClassDef: 'class definitions',
    ast.With: 'with statements',
    ast.AsyncWith: 'with statements',
    ast.AsyncFunctionDef: 'async functions',
    ast.AsyncFor: 'async loops',
    ast.Await: 'await expressions',
    ast.Yield: 'generators',
    ast.YieldFrom: 'generators',
}

# Attributes that reach interpreter internals without a leading underscore
FORBIDDEN_ATTRIBUTES = frozenset((
    'format', 'format_map', 'mro',
    'gi_frame', 'gi_code', 'gi_yieldframe', 'cr_frame', 'cr_code', 'ag_frame', 'ag_code',
    'f_globals', 'f_locals', 'f_builtins', 'f_back', 'f_code', 'tb_frame', 'tb_next',
    'co_code', 'func_globals', 'func_code',
))


class SandboxViolation(Exception):
    pass


@dataclass(frozen=True)
class PreparedScript:
    """Result of validating a script: either wrapped source ready to compile or the reason it was refused."""
    wrapped_source: Optional[str] = None
    violation: Optional[str] = None
    syntax_error: Optional[str] = None

    @property
    def is_runnable(self):
        return self.wrapped_source is not None


class ScriptSandbox:
    """
    Validates script bodies against the capability set before they run,
    and builds the only globals a script can see.
    """

    def __init__(self, cache_size=DEFAULT_COMPILED_CACHE_SIZE, cache_ttl=DEFAULT_COMPILED_CACHE_TTL):
        self.__prepared_cache = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self.__cache_lock = Lock()

    def prepare(self, kind: ScriptKind, source: str) -> PreparedScript:
        cache_key = (kind, source)
        with self.__cache_lock:
            prepared = self.__prepared_cache.get(cache_key)
        if prepared is None:
            prepared = self._prepare(kind, source)
            with self.__cache_lock:
                self.__prepared_cache[cache_key] = prepared
        return prepared

    @staticmethod
    def _prepare(kind, source):
        wrapped_source = ScriptSandbox.wrap(kind, source)
        try:
            tree = ast.parse(wrapped_source, mode='exec')
        except SyntaxError as e:
            # line 1 is the generated function header
            line = (e.lineno - 1) if e.lineno else '?'
            return PreparedScript(syntax_error="SyntaxError: %s (line %s)" % (e.msg, line))

        try:
            ScriptSandbox.check_tree(tree, SCRIPT_PARAMETERS[kind])
        except SandboxViolation as e:
            log.debug("Script refused by sandbox: %s", e)
            return PreparedScript(violation=str(e))

        return PreparedScript(wrapped_source=wrapped_source)

    @staticmethod
    def wrap(kind, source):
        header = "def %s(%s):\n" % (SCRIPT_FUNCTION_NAME, ', '.join(SCRIPT_PARAMETERS[kind]))
        return header + indent(dedent(source).strip('\n'), '    ') + '\n'

    @staticmethod
    def check_tree(tree, parameters):
        bound_names = set(parameters)
        loaded_names = set()

        for node in ast.walk(tree):
            for node_type, description in FORBIDDEN_NODES.items():
                if isinstance(node, node_type):
                    raise SandboxViolation("%s are not allowed (line %s)" % (description, ScriptSandbox._line(node)))

            if isinstance(node, ast.Attribute):
                if node.attr.startswith('_') or node.attr in FORBIDDEN_ATTRIBUTES:
                    raise SandboxViolation("access to attribute '%s' is not allowed (line %s)"
                                           % (node.attr, ScriptSandbox._line(node)))
            elif isinstance(node, ast.Name):
                if node.id.startswith('__'):
                    raise SandboxViolation("access to name '%s' is not allowed (line %s)"
                                           % (node.id, ScriptSandbox._line(node)))
                if isinstance(node.ctx, ast.Load):
                    loaded_names.add(node.id)
                else:
                    bound_names.add(node.id)
            elif isinstance(node, ast.arg):
                bound_names.add(node.arg)
            elif isinstance(node, ast.FunctionDef):
                if node.name.startswith('__') and node.name != SCRIPT_FUNCTION_NAME:
                    raise SandboxViolation("function name '%s' is not allowed (line %s)"
                                           % (node.name, ScriptSandbox._line(node)))
                bound_names.add(node.name)
            elif isinstance(node, ast.ExceptHandler) and node.name:
                bound_names.add(node.name)
            else:
                # match statement captures
                for attribute in ('name', 'rest'):
                    captured = getattr(node, attribute, None)
                    if isinstance(captured, str) and type(node).__name__.startswith('Match'):
                        bound_names.add(captured)

        unknown_names = loaded_names - bound_names - CAPABILITY_NAMES
        if unknown_names:
            raise SandboxViolation("name(s) %s are not available in the script context"
                                   % ', '.join(repr(name) for name in sorted(unknown_names)))

    @staticmethod
    def _line(node):
        lineno = getattr(node, 'lineno', None)
        return lineno - 1 if lineno else '?'

    @staticmethod
    def load_function(wrapped_source, script_id):
        """Compiles the wrapped source with the capability set as the only builtins and returns the script function."""
        code = compile(wrapped_source, '<script:%s>' % script_id, 'exec')
        script_globals = {'__builtins__': build_capabilities()}
        exec(code, script_globals)
        return script_globals[SCRIPT_FUNCTION_NAME]
