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

import multiprocessing
from logging import getLogger
from time import monotonic

from tb_rule_harness.harness.constant_enums import ErrorKind, ScriptKind
from tb_rule_harness.harness.constants import DEFAULT_STARTUP_TIMEOUT_MS, WORKER_JOIN_TIMEOUT_SECONDS, \
    WORKER_STARTED, WORKER_RESULT, WORKER_ERROR, WORKER_INVALID, MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING, \
    PAYLOAD_BINDING, DEFAULT_COMPILED_CACHE_SIZE
from tb_rule_harness.harness.entities.execution_result import DecodedTelemetry, ExecutionResult, Failure, \
    FilterDecision, TransformedMessage
from tb_rule_harness.harness.entities.message import Message
from tb_rule_harness.harness.entities.script_definition import ScriptDefinition
from tb_rule_harness.harness.sandbox import ScriptSandbox

log = getLogger("engine")

TELEMETRY_VALUE_TYPES = (int, float, str, bool, type(None))


def _apply_memory_limit(max_memory_mb):
    if not max_memory_mb:
        return
    try:
        import resource
    except ImportError:
        return
    limit = int(max_memory_mb) * 1024 * 1024
    resource.setrlimit(resource.RLIMIT_AS, (limit, limit))


def _script_worker(connection, wrapped_source, script_id, bindings, max_memory_mb):
    """Runs in a disposable process: loads the script, reports start, runs it once and reports the outcome."""
    try:
        _apply_memory_limit(max_memory_mb)
        script_function = ScriptSandbox.load_function(wrapped_source, script_id)
    except Exception as e:
        connection.send((WORKER_ERROR, type(e).__name__, str(e)))
        connection.close()
        return

    connection.send((WORKER_STARTED,))
    try:
        result = script_function(**bindings)
    except Exception as e:
        connection.send((WORKER_ERROR, type(e).__name__, str(e)))
        connection.close()
        return

    try:
        connection.send((WORKER_RESULT, result))
    except Exception as e:
        connection.send((WORKER_INVALID, "result of type %s can not be returned: %s" % (type(result).__name__, e)))
    connection.close()


class ExecutionEngine:
    """
    Executes one script definition against one message. Every execution gets its own
    worker process which is discarded afterwards, so a runaway script is terminated
    at its deadline and can not touch anything outside its own invocation.
    Script problems never escape as exceptions: they are returned as Failure results.
    """

    def __init__(self, start_method=None, startup_timeout_ms=DEFAULT_STARTUP_TIMEOUT_MS, max_memory_mb=None,
                 cache_size=DEFAULT_COMPILED_CACHE_SIZE):
        self._context = multiprocessing.get_context(start_method)
        self._startup_timeout = startup_timeout_ms / 1000.0
        self._max_memory_mb = max_memory_mb
        self._sandbox = ScriptSandbox(cache_size=cache_size)
        log.debug("Execution engine created with start method '%s'", self._context.get_start_method())

    def execute(self, definition: ScriptDefinition, msg=None, metadata=None, msg_type='',
                payload=None) -> ExecutionResult:
        started = monotonic()
        result = self._execute(definition, msg, metadata, msg_type, payload)
        if result.is_failure:
            log.debug("Script '%s' failed after %.1f ms: %s", definition.script_id,
                      (monotonic() - started) * 1000, result)
        else:
            log.trace("Script '%s' finished in %.1f ms: %s", definition.script_id,
                      (monotonic() - started) * 1000, result)
        return result

    def execute_message(self, definition: ScriptDefinition, message: Message, payload=None) -> ExecutionResult:
        return self.execute(definition, message.data, message.metadata, message.msg_type, payload)

    def _execute(self, definition, msg, metadata, msg_type, payload):
        prepared = self._sandbox.prepare(definition.kind, definition.source)
        if prepared.syntax_error:
            return Failure(ErrorKind.RUNTIME_ERROR, prepared.syntax_error)
        if prepared.violation:
            return Failure(ErrorKind.SANDBOX_VIOLATION, prepared.violation)

        if definition.kind is ScriptKind.DECODER:
            if not isinstance(payload, (bytes, bytearray)):
                return Failure(ErrorKind.CONTRACT_VIOLATION,
                               "Decoder input must be a byte sequence, got %s" % type(payload).__name__)
            bindings = {PAYLOAD_BINDING: bytes(payload)}
        else:
            bindings = {MSG_BINDING: dict(msg) if msg is not None else {}}
        bindings[METADATA_BINDING] = dict(metadata) if metadata is not None else {}
        bindings[MSG_TYPE_BINDING] = msg_type

        outcome = self._run_isolated(definition, prepared.wrapped_source, bindings)
        if isinstance(outcome, Failure):
            return outcome
        return self.validate_output(definition, outcome)

    def _run_isolated(self, definition, wrapped_source, bindings):
        receiver, sender = self._context.Pipe(duplex=False)
        worker = self._context.Process(target=_script_worker,
                                       args=(sender, wrapped_source, definition.script_id, bindings,
                                             self._max_memory_mb),
                                       name="Script worker %s" % definition.script_id,
                                       daemon=True)
        try:
            worker.start()
        except Exception as e:
            log.exception("Failed to start worker for script '%s'", definition.script_id)
            receiver.close()
            sender.close()
            return Failure(ErrorKind.RUNTIME_ERROR, "Failed to start script worker: %s" % e)
        sender.close()

        try:
            if not receiver.poll(self._startup_timeout):
                log.warning("Worker for script '%s' did not start in %.0f ms", definition.script_id,
                            self._startup_timeout * 1000)
                return Failure(ErrorKind.TIMEOUT, "Script worker did not start in %.0f ms"
                               % (self._startup_timeout * 1000))
            message = receiver.recv()
            if message[0] == WORKER_STARTED:
                if not receiver.poll(definition.timeout_seconds):
                    log.warning("Script '%s' exceeded its timeout of %s ms", definition.script_id,
                                definition.timeout_ms)
                    return Failure(ErrorKind.TIMEOUT, "Script exceeded its timeout of %s ms" % definition.timeout_ms)
                message = receiver.recv()
        except EOFError:
            worker.join(WORKER_JOIN_TIMEOUT_SECONDS)
            return Failure(ErrorKind.RUNTIME_ERROR,
                           "Script worker exited unexpectedly with code %s" % worker.exitcode)
        finally:
            receiver.close()
            self._discard(worker)

        status = message[0]
        if status == WORKER_RESULT:
            return message[1]
        if status == WORKER_ERROR:
            return Failure(ErrorKind.RUNTIME_ERROR, "%s: %s" % (message[1], message[2]))
        if status == WORKER_INVALID:
            return Failure(ErrorKind.CONTRACT_VIOLATION, message[1])
        return Failure(ErrorKind.RUNTIME_ERROR, "Unexpected worker response: %r" % (status,))

    @staticmethod
    def _discard(worker):
        if worker.is_alive():
            worker.terminate()
            worker.join(WORKER_JOIN_TIMEOUT_SECONDS)
            if worker.is_alive():
                worker.kill()
        worker.join(WORKER_JOIN_TIMEOUT_SECONDS)
        try:
            worker.close()
        except ValueError:
            log.warning("Worker %s is still running and will be reaped on exit", worker.name)

    @staticmethod
    def validate_output(definition: ScriptDefinition, output) -> ExecutionResult:
        if definition.kind is ScriptKind.FILTER:
            if not isinstance(output, bool):
                return Failure(ErrorKind.CONTRACT_VIOLATION,
                               "Filter script must return a boolean, got %s" % type(output).__name__)
            return FilterDecision(output)

        if definition.kind is ScriptKind.TRANSFORM:
            errors = ExecutionEngine._check_transform_output(output)
            if errors:
                return Failure(ErrorKind.CONTRACT_VIOLATION, "Transform output is malformed: " + '; '.join(errors))
            return TransformedMessage(Message(data=output[MSG_BINDING], metadata=output[METADATA_BINDING],
                                              msg_type=output[MSG_TYPE_BINDING]))

        if not isinstance(output, dict):
            return Failure(ErrorKind.CONTRACT_VIOLATION,
                           "Decoder script must return a mapping, got %s" % type(output).__name__)
        for key, value in output.items():
            if not isinstance(key, str) or not key:
                return Failure(ErrorKind.CONTRACT_VIOLATION, "Telemetry key %r is not a non-empty string" % (key,))
            if not isinstance(value, TELEMETRY_VALUE_TYPES):
                return Failure(ErrorKind.CONTRACT_VIOLATION, "Telemetry value for '%s' is not flat: %s"
                               % (key, type(value).__name__))
        return DecodedTelemetry(output)

    @staticmethod
    def _check_transform_output(output):
        if not isinstance(output, dict):
            return ["expected a mapping with %s, %s and %s, got %s"
                    % (MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING, type(output).__name__)]

        errors = []
        for required in (MSG_BINDING, METADATA_BINDING, MSG_TYPE_BINDING):
            if required not in output:
                errors.append("'%s' is missing" % required)
        if errors:
            return errors

        msg = output[MSG_BINDING]
        if not isinstance(msg, dict):
            errors.append("'%s' must be a mapping, got %s" % (MSG_BINDING, type(msg).__name__))
        else:
            problem = ExecutionEngine._find_non_json_value(msg, MSG_BINDING)
            if problem:
                errors.append(problem)

        metadata = output[METADATA_BINDING]
        if not isinstance(metadata, dict):
            errors.append("'%s' must be a mapping, got %s" % (METADATA_BINDING, type(metadata).__name__))
        elif not all(isinstance(key, str) and isinstance(value, str) for key, value in metadata.items()):
            errors.append("'%s' must map strings to strings" % METADATA_BINDING)

        msg_type = output[MSG_TYPE_BINDING]
        if not isinstance(msg_type, str) or not msg_type:
            errors.append("'%s' must be a non-empty string" % MSG_TYPE_BINDING)

        return errors

    @staticmethod
    def _find_non_json_value(value, location):
        if isinstance(value, dict):
            for key, item in value.items():
                if not isinstance(key, str):
                    return "'%s' keys must be strings, got %r" % (location, key)
                problem = ExecutionEngine._find_non_json_value(item, "%s.%s" % (location, key))
                if problem:
                    return problem
            return None
        if isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                problem = ExecutionEngine._find_non_json_value(item, "%s[%d]" % (location, index))
                if problem:
                    return problem
            return None
        if not isinstance(value, TELEMETRY_VALUE_TYPES):
            return "'%s' is not JSON compatible: %s" % (location, type(value).__name__)
        return None
