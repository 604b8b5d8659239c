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
import logging.config
from os import environ, path

from tb_rule_harness.harness.constants import LOGS_CONFIG_FILENAME, ENGINE_SECTION_PARAMETER, \
    PIPELINE_SECTION_PARAMETER, SINK_SECTION_PARAMETER, SCRIPTS_SECTION_PARAMETER, DEFAULT_TIMEOUT_PARAMETER, \
    WORKER_START_METHOD_PARAMETER, STARTUP_TIMEOUT_PARAMETER, MAX_MEMORY_PARAMETER, COMPILED_CACHE_SIZE_PARAMETER, \
    WORKERS_PARAMETER, SINK_TYPE_PARAMETER, SINK_PATH_PARAMETER, DEFAULT_SCRIPT_TIMEOUT_MS, \
    DEFAULT_STARTUP_TIMEOUT_MS, DEFAULT_COMPILED_CACHE_SIZE, DEFAULT_PIPELINE_WORKERS
from tb_rule_harness.harness.entities.script_definition import ScriptDefinition
from tb_rule_harness.harness.exceptions import HarnessConfigurationError
from tb_rule_harness.harness.execution_engine import ExecutionEngine
from tb_rule_harness.harness.pipeline import MessagePipeline
from tb_rule_harness.harness.route_loader import ConfigRouteLoader, RouteLoader, build_routes
from tb_rule_harness.harness.script_registry import ScriptRegistry
from tb_rule_harness.harness.statistics.statistics_service import StatisticsService
from tb_rule_harness.sinks.file_sink import FileSink
from tb_rule_harness.sinks.memory_sink import MemorySink
from tb_rule_harness.tb_utility.tb_logger import TbLogger
from tb_rule_harness.tb_utility.tb_utility import TBUtility

log = logging.getLogger("service")

DEFAULT_SINKS = {
    "memory": MemorySink,
    "file": FileSink,
}


def get_env_variables():
    env_variables = {
        ENGINE_SECTION_PARAMETER: {},
        PIPELINE_SECTION_PARAMETER: {},
        SINK_SECTION_PARAMETER: {}
    }

    if environ.get('TB_HARNESS_DEFAULT_TIMEOUT_MS'):
        env_variables[ENGINE_SECTION_PARAMETER][DEFAULT_TIMEOUT_PARAMETER] = \
            float(environ.get('TB_HARNESS_DEFAULT_TIMEOUT_MS'))
    if environ.get('TB_HARNESS_START_METHOD'):
        env_variables[ENGINE_SECTION_PARAMETER][WORKER_START_METHOD_PARAMETER] = \
            environ.get('TB_HARNESS_START_METHOD')
    if environ.get('TB_HARNESS_WORKERS'):
        env_variables[PIPELINE_SECTION_PARAMETER][WORKERS_PARAMETER] = int(environ.get('TB_HARNESS_WORKERS'))
    if environ.get('TB_HARNESS_SINK_PATH'):
        env_variables[SINK_SECTION_PARAMETER][SINK_TYPE_PARAMETER] = 'file'
        env_variables[SINK_SECTION_PARAMETER][SINK_PATH_PARAMETER] = environ.get('TB_HARNESS_SINK_PATH')

    return {key: value for key, value in env_variables.items() if value}


class TBHarnessService:
    """
    Owns the lifecycle of the harness: loads the configuration, registers scripts,
    loads routes and wires registry, engine, pipeline and sink together.
    """

    def __init__(self, config_file=None, config=None, route_loader: RouteLoader = None, sink=None):
        if config is None and config_file is None:
            raise HarnessConfigurationError("Either config_file or config is required")

        self._config_dir = path.dirname(path.abspath(config_file)) + path.sep if config_file else None

        logging_error = None
        if self._config_dir and path.exists(self._config_dir + LOGS_CONFIG_FILENAME):
            try:
                logging.config.dictConfig(TBUtility.load_file(self._config_dir + LOGS_CONFIG_FILENAME))
            except Exception as e:
                logging_error = e

        if logging_error is not None:
            log.error("Failed to load logging configuration: %s", logging_error)

        self.__config = config if config is not None else self.__load_general_config(config_file)
        self.__modify_main_config()

        log.info("Rule harness starting...")
        engine_config = self.__config.get(ENGINE_SECTION_PARAMETER, {})
        self._default_timeout_ms = engine_config.get(DEFAULT_TIMEOUT_PARAMETER, DEFAULT_SCRIPT_TIMEOUT_MS)

        self.registry = ScriptRegistry()
        self.engine = ExecutionEngine(start_method=engine_config.get(WORKER_START_METHOD_PARAMETER),
                                      startup_timeout_ms=engine_config.get(STARTUP_TIMEOUT_PARAMETER,
                                                                           DEFAULT_STARTUP_TIMEOUT_MS),
                                      max_memory_mb=engine_config.get(MAX_MEMORY_PARAMETER),
                                      cache_size=engine_config.get(COMPILED_CACHE_SIZE_PARAMETER,
                                                                   DEFAULT_COMPILED_CACHE_SIZE))
        self.sink = sink if sink is not None else self.__load_sink(self.__config.get(SINK_SECTION_PARAMETER, {}))

        self.__load_scripts(self.__config.get(SCRIPTS_SECTION_PARAMETER, []))
        self._route_loader = route_loader or ConfigRouteLoader(self.__config)
        routes = build_routes(self._route_loader, self.registry)

        pipeline_config = self.__config.get(PIPELINE_SECTION_PARAMETER, {})
        self.pipeline = MessagePipeline(self.registry, self.engine, routes, self.sink,
                                        workers=pipeline_config.get(WORKERS_PARAMETER, DEFAULT_PIPELINE_WORKERS))
        log.info("Rule harness started with %d script(s) and %d route(s)", len(self.registry), len(routes))

    @property
    def config(self):
        return self.__config

    @staticmethod
    def __load_general_config(config_file):
        if not path.exists(config_file):
            raise HarnessConfigurationError("Configuration file %s does not exist" % config_file)
        try:
            config = TBUtility.load_file(config_file)
        except Exception as e:
            log.exception('Failed to load configuration file:\n %s', e)
            raise HarnessConfigurationError("Failed to load configuration file %s: %s" % (config_file, e))
        if not isinstance(config, dict):
            raise HarnessConfigurationError("Configuration file %s must contain a mapping" % config_file)
        return config

    def __modify_main_config(self):
        for section, values in get_env_variables().items():
            self.__config[section] = {**self.__config.get(section, {}), **values}

    def __load_sink(self, sink_config):
        sink_type = sink_config.get(SINK_TYPE_PARAMETER, 'memory')
        sink_class = DEFAULT_SINKS.get(sink_type)
        if sink_class is None:
            raise HarnessConfigurationError("Unknown sink type '%s', available: %s"
                                            % (sink_type, ', '.join(DEFAULT_SINKS)))
        if sink_config.get(SINK_PATH_PARAMETER) and self._config_dir \
                and not path.isabs(sink_config[SINK_PATH_PARAMETER]):
            sink_config = {**sink_config, SINK_PATH_PARAMETER: path.join(self._config_dir,
                                                                         sink_config[SINK_PATH_PARAMETER])}
        return sink_class(sink_config)

    def __load_scripts(self, scripts_config):
        for script_config in scripts_config:
            try:
                definition = ScriptDefinition.from_config(script_config, self._config_dir, self._default_timeout_ms)
            except (OSError, ValueError) as e:
                log.error("Failed to load script %s: %s", script_config.get('id'), e)
                raise HarnessConfigurationError("Failed to load script %s: %s" % (script_config.get('id'), e))
            self.registry.register(definition)

    def register_script(self, definition: ScriptDefinition):
        self.registry.register(definition)

    def unregister_script(self, script_id):
        self.registry.unregister(script_id)

    def reload_routes(self):
        routes = build_routes(self._route_loader, self.registry)
        self.pipeline.set_routes(routes)
        return routes

    def submit(self, msg_type, raw_payload, metadata=None, route_id=None):
        return self.pipeline.submit(msg_type, raw_payload, metadata, route_id)

    def submit_async(self, msg_type, raw_payload, metadata=None, route_id=None):
        return self.pipeline.submit_async(msg_type, raw_payload, metadata, route_id)

    @staticmethod
    def get_statistics():
        return {
            "routes": StatisticsService.get_route_statistics(),
            "errors": TbLogger.get_errors_batch()
        }

    def stop(self):
        log.info("Stopping rule harness...")
        self.pipeline.stop()
        self.sink.stop()
        log.info("The rule harness has been stopped.")
