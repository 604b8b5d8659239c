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

# Service constants

CONFIG_FILENAME = "tb_harness.json"
LOGS_CONFIG_FILENAME = "logs.json"
CONFIG_DIR_ENV_VARIABLE = "TB_HARNESS_CONFIG_DIR"

ENGINE_SECTION_PARAMETER = "engine"
PIPELINE_SECTION_PARAMETER = "pipeline"
SINK_SECTION_PARAMETER = "sink"
SCRIPTS_SECTION_PARAMETER = "scripts"
ROUTES_SECTION_PARAMETER = "routes"

# Script definition parameters

SCRIPT_ID_PARAMETER = "id"
SCRIPT_KIND_PARAMETER = "kind"
SCRIPT_SOURCE_PARAMETER = "source"
SCRIPT_SOURCE_FILE_PARAMETER = "sourceFile"
SCRIPT_TIMEOUT_PARAMETER = "timeoutMs"

# Timeout in milliseconds
DEFAULT_SCRIPT_TIMEOUT_MS = 500

# Route parameters

ROUTE_DECODER_PARAMETER = "decoder"
ROUTE_FILTERS_PARAMETER = "filters"
ROUTE_TRANSFORMS_PARAMETER = "transforms"
ROUTE_ENRICHERS_PARAMETER = "enrichers"

# Engine parameters

DEFAULT_TIMEOUT_PARAMETER = "defaultTimeoutMs"
WORKER_START_METHOD_PARAMETER = "workerStartMethod"
STARTUP_TIMEOUT_PARAMETER = "startupTimeoutMs"
MAX_MEMORY_PARAMETER = "maxMemoryMb"
COMPILED_CACHE_SIZE_PARAMETER = "compiledCacheSize"

DEFAULT_STARTUP_TIMEOUT_MS = 5000
DEFAULT_COMPILED_CACHE_SIZE = 1000
# Cache TTL in seconds
DEFAULT_COMPILED_CACHE_TTL = 300
WORKER_JOIN_TIMEOUT_SECONDS = 1.0

# Pipeline parameters

WORKERS_PARAMETER = "workers"
DEFAULT_PIPELINE_WORKERS = 4

# Sink parameters

SINK_TYPE_PARAMETER = "type"
SINK_PATH_PARAMETER = "path"
SINK_MAX_RECORDS_PARAMETER = "maxRecordsCount"
SINK_READ_RECORDS_PARAMETER = "readRecordsCount"
DEFAULT_SINK_MAX_RECORDS = 10000
DEFAULT_SINK_READ_RECORDS = 1000

# Script bound names

MSG_BINDING = "msg"
METADATA_BINDING = "metadata"
MSG_TYPE_BINDING = "msgType"
PAYLOAD_BINDING = "payload"

# Worker protocol

WORKER_STARTED = "started"
WORKER_RESULT = "result"
WORKER_ERROR = "error"
WORKER_INVALID = "invalid"

# Statistics keys

STATISTIC_MESSAGES_RECEIVED = "msgsReceived"
STATISTIC_BYTES_RECEIVED = "bytesReceived"
STATISTIC_MESSAGES_DELIVERED = "msgsDelivered"
STATISTIC_MESSAGES_DROPPED = "msgsDropped"
STATISTIC_MESSAGES_ERRORED = "msgsErrored"
STATISTIC_SCRIPT_TIMEOUTS = "scriptTimeouts"
STATISTIC_SCRIPT_EXECUTIONS = "scriptExecutions"
