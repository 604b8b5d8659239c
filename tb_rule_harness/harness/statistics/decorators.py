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

from functools import wraps

from tb_rule_harness.harness.statistics.statistics_service import StatisticsService
from tb_rule_harness.tb_utility.tb_utility import TBUtility


class CollectStatistics:
    """
    Counts calls and received payload bytes of a pipeline entry point.
    The decorated method must accept route_id and raw_payload keyword or positional arguments
    in the order (msg_type, raw_payload, metadata, route_id).
    """

    def __init__(self, start_stat_type, bytes_stat_type=None):
        self.start_stat_type = start_stat_type
        self.bytes_stat_type = bytes_stat_type

    def __call__(self, func):
        @wraps(func)
        def inner(*args, **kwargs):
            route_id, raw_payload = self._resolve_arguments(args, kwargs)
            StatisticsService.add_count(route_id, self.start_stat_type)
            if self.bytes_stat_type and raw_payload is not None:
                StatisticsService.add_count(route_id, self.bytes_stat_type, TBUtility.get_data_size(raw_payload))

            return func(*args, **kwargs)

        return inner

    @staticmethod
    def _resolve_arguments(args, kwargs):
        # args[0] is self
        positional = list(args[1:]) + [None] * 4
        raw_payload = kwargs.get('raw_payload', positional[1])
        route_id = kwargs.get('route_id', positional[3])
        return route_id, raw_payload


class CountDisposition:
    """Counts the disposition of every PipelineRun returned by the decorated method."""

    def __init__(self, stat_types: dict):
        self.stat_types = stat_types

    def __call__(self, func):
        @wraps(func)
        def inner(*args, **kwargs):
            run = func(*args, **kwargs)
            stat_type = self.stat_types.get(run.disposition)
            if stat_type:
                StatisticsService.add_count(run.route_id, stat_type)
            return run

        return inner
