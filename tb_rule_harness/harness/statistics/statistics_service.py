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

from threading import RLock


class StatisticsService:
    # Counters for each route
    # The key is the route id and the value is another dictionary
    # The key of the inner dictionary is the statistic name and the value is the statistic value
    # Example:
    # {
    #     "route_id": {
    #         "statistic_name": statistic_value
    #         ...
    #     }
    # }
    ROUTE_STATISTICS_STORAGE = {}
    __LOCK = RLock()

    @classmethod
    def add_count(cls, route_id, stat_parameter_name, count=1):
        with cls.__LOCK:
            route_statistics = cls.ROUTE_STATISTICS_STORAGE.setdefault(route_id, {})
            route_statistics[stat_parameter_name] = route_statistics.get(stat_parameter_name, 0) + count

    @classmethod
    def get_count(cls, route_id, stat_parameter_name):
        with cls.__LOCK:
            return cls.ROUTE_STATISTICS_STORAGE.get(route_id, {}).get(stat_parameter_name, 0)

    @classmethod
    def get_route_statistics(cls, route_id=None):
        with cls.__LOCK:
            if route_id is not None:
                return dict(cls.ROUTE_STATISTICS_STORAGE.get(route_id, {}))
            return {key: dict(value) for key, value in cls.ROUTE_STATISTICS_STORAGE.items()}

    @classmethod
    def clear_statistics(cls):
        with cls.__LOCK:
            cls.ROUTE_STATISTICS_STORAGE = {}
