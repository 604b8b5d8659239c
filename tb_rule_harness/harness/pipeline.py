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

from concurrent.futures import Future, ThreadPoolExecutor
from logging import getLogger
from threading import Event, RLock
from time import monotonic
from typing import Dict, Optional

from tb_rule_harness.harness.constant_enums import Disposition, ErrorKind, RunState
from tb_rule_harness.harness.constants import DEFAULT_PIPELINE_WORKERS, STATISTIC_MESSAGES_RECEIVED, \
    STATISTIC_BYTES_RECEIVED, STATISTIC_MESSAGES_DELIVERED, STATISTIC_MESSAGES_DROPPED, STATISTIC_MESSAGES_ERRORED, \
    STATISTIC_SCRIPT_TIMEOUTS, STATISTIC_SCRIPT_EXECUTIONS
from tb_rule_harness.harness.entities.execution_result import DecodedTelemetry, Failure, FilterDecision, \
    TransformedMessage
from tb_rule_harness.harness.entities.message import Message
from tb_rule_harness.harness.entities.pipeline_run import PipelineRun
from tb_rule_harness.harness.entities.route import Route
from tb_rule_harness.harness.exceptions import DeliveryError
from tb_rule_harness.harness.execution_engine import ExecutionEngine
from tb_rule_harness.harness.script_registry import ScriptRegistry
from tb_rule_harness.harness.statistics.decorators import CollectStatistics, CountDisposition
from tb_rule_harness.harness.statistics.statistics_service import StatisticsService
from tb_rule_harness.sinks.delivery_sink import DeliverySink
from tb_rule_harness.tb_utility.tb_utility import TBUtility

log = getLogger("pipeline")


class RunCancelled(Exception):
    pass


class MessagePipeline:
    """
    Runs every inbound message through its route:
    Received -> [Decoding] -> Filtering -> {Dropped | Transforming} -> {Errored | Enriching} -> Delivered.

    Runs are independent and may be submitted concurrently; the stages of one run are strictly sequential.
    Stopping the pipeline is checked between stages, a script already running is left to finish or time out
    and its result is discarded.
    """

    def __init__(self, registry: ScriptRegistry, engine: ExecutionEngine, routes: Dict[str, Route],
                 sink: DeliverySink, workers=DEFAULT_PIPELINE_WORKERS):
        self._registry = registry
        self._engine = engine
        self._sink = sink
        self._routes = dict(routes)
        self._routes_lock = RLock()
        self._stopped = Event()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="Pipeline worker")

    @property
    def routes(self):
        with self._routes_lock:
            return dict(self._routes)

    def set_routes(self, routes: Dict[str, Route]):
        with self._routes_lock:
            self._routes = dict(routes)

    def is_stopped(self):
        return self._stopped.is_set()

    def stop(self, wait=True):
        log.info("Stopping message pipeline...")
        self._stopped.set()
        self._executor.shutdown(wait=wait)
        log.info("Message pipeline stopped.")

    def submit_async(self, msg_type, raw_payload, metadata=None, route_id=None) -> Future:
        if self._stopped.is_set():
            future = Future()
            future.set_result(self.submit(msg_type, raw_payload, metadata, route_id))
            return future
        return self._executor.submit(self.submit, msg_type, raw_payload, metadata, route_id)

    @CountDisposition({Disposition.DELIVERED: STATISTIC_MESSAGES_DELIVERED,
                       Disposition.DROPPED: STATISTIC_MESSAGES_DROPPED,
                       Disposition.ERRORED: STATISTIC_MESSAGES_ERRORED})
    @CollectStatistics(STATISTIC_MESSAGES_RECEIVED, STATISTIC_BYTES_RECEIVED)
    def submit(self, msg_type, raw_payload, metadata=None, route_id=None) -> PipelineRun:
        started = monotonic()
        run = PipelineRun(route_id=route_id, raw_payload=raw_payload)
        try:
            self._process(run, msg_type, raw_payload, metadata or {})
        except RunCancelled:
            run.finish(Disposition.ERRORED, error=Failure(ErrorKind.CANCELLED, "Pipeline was stopped"))
        except Exception as e:
            log.exception("Unexpected error while processing message on route '%s'", route_id)
            run.finish(Disposition.ERRORED, error=Failure(ErrorKind.RUNTIME_ERROR, "Pipeline error: %s" % e))
        run.elapsed_ms = (monotonic() - started) * 1000

        log.debug("[%s] Run %s finished as %s in %.1f ms", route_id, run.run_id, run.disposition.value,
                  run.elapsed_ms)
        return run

    def _process(self, run: PipelineRun, msg_type, raw_payload, metadata):
        with self._routes_lock:
            route = self._routes.get(run.route_id)
        if route is None:
            log.error("Route '%s' is not configured", run.route_id)
            run.finish(Disposition.ERRORED,
                       error=Failure(ErrorKind.NOT_FOUND, "Route '%s' is not configured" % run.route_id))
            return

        message = self._decode(run, route, msg_type, raw_payload, metadata)
        if message is None:
            return
        run.input_message = message.copy()

        run.transition(RunState.FILTERING)
        for script_id in route.filters:
            result = self._run_stage(run, script_id, message)
            if result.is_failure:
                run.finish(Disposition.ERRORED, error=result)
                return
            if not result.passed:
                log.debug("[%s] Message dropped by filter '%s'", run.route_id, script_id)
                run.finish(Disposition.DROPPED)
                return

        for state, script_ids in ((RunState.TRANSFORMING, route.transforms), (RunState.ENRICHING, route.enrichers)):
            run.transition(state)
            for script_id in script_ids:
                result = self._run_stage(run, script_id, message)
                if result.is_failure:
                    run.finish(Disposition.ERRORED, error=result)
                    return
                message = result.message

        self._deliver(run, message)

    def _decode(self, run, route, msg_type, raw_payload, metadata) -> Optional[Message]:
        if isinstance(raw_payload, dict):
            return Message(data=raw_payload, metadata=dict(metadata), msg_type=msg_type).copy()

        if not isinstance(raw_payload, (bytes, bytearray)):
            run.finish(Disposition.ERRORED,
                       error=Failure(ErrorKind.CONTRACT_VIOLATION,
                                     "Payload must be bytes or a mapping, got %s" % type(raw_payload).__name__))
            return None

        run.transition(RunState.DECODING)
        if route.decoder is None:
            content = TBUtility.decode(raw_payload)
            if not isinstance(content, dict):
                run.finish(Disposition.ERRORED,
                           error=Failure(ErrorKind.CONTRACT_VIOLATION,
                                         "Payload is not a JSON object and route has no decoder"))
                return None
            return Message(data=content, metadata=dict(metadata), msg_type=msg_type)

        result = self._run_stage(run, route.decoder, Message(metadata=dict(metadata), msg_type=msg_type),
                                 payload=bytes(raw_payload))
        if result.is_failure:
            run.finish(Disposition.ERRORED, error=result)
            return None
        return Message(data=dict(result.telemetry), metadata=dict(metadata), msg_type=msg_type)

    def _run_stage(self, run: PipelineRun, script_id, message: Message, payload=None):
        if self._stopped.is_set():
            raise RunCancelled()

        # captured by value, later unregistration does not affect this execution
        definition = self._registry.lookup(script_id)
        started = monotonic()
        if definition is None:
            result = Failure(ErrorKind.NOT_FOUND, "Script '%s' is not registered" % script_id)
        else:
            StatisticsService.add_count(run.route_id, STATISTIC_SCRIPT_EXECUTIONS)
            result = self._engine.execute_message(definition, message.copy(), payload=payload)
        elapsed_ms = (monotonic() - started) * 1000

        if self._stopped.is_set():
            raise RunCancelled()

        if not result.is_failure and not self._matches_stage(run.state, result):
            result = Failure(ErrorKind.CONTRACT_VIOLATION,
                             "Script '%s' produced %s in %s stage" % (script_id, type(result).__name__,
                                                                      run.state.value))
        if isinstance(result, Failure) and result.error_kind is ErrorKind.TIMEOUT:
            StatisticsService.add_count(run.route_id, STATISTIC_SCRIPT_TIMEOUTS)

        run.record(script_id, result, elapsed_ms)
        if result.is_failure:
            log.warning("[%s] Script '%s' failed: %s", run.route_id, script_id, result)
        return result

    @staticmethod
    def _matches_stage(state, result):
        if state is RunState.DECODING:
            return isinstance(result, DecodedTelemetry)
        if state is RunState.FILTERING:
            return isinstance(result, FilterDecision)
        return isinstance(result, TransformedMessage)

    def _deliver(self, run, message):
        if self._stopped.is_set():
            raise RunCancelled()

        run.transition(RunState.DELIVERING)
        started = monotonic()
        try:
            self._sink.deliver(message.copy())
        except DeliveryError as e:
            failure = Failure(ErrorKind.DELIVERY_ERROR, str(e))
            run.record(self._sink.get_name(), failure, (monotonic() - started) * 1000)
            log.error("[%s] Failed to deliver message: %s", run.route_id, e)
            run.finish(Disposition.ERRORED, error=failure)
            return
        run.finish(Disposition.DELIVERED, output_message=message)
