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

from abc import ABC, abstractmethod
from logging import getLogger

from tb_rule_harness.harness.constants import ROUTES_SECTION_PARAMETER
from tb_rule_harness.harness.entities.route import Route
from tb_rule_harness.harness.exceptions import RouteConfigurationError
from tb_rule_harness.tb_utility.tb_utility import TBUtility

log = getLogger("service")


class RouteLoader(ABC):
    """Source of route definitions: route id -> ordered script ids (or a mapping of stage lists)."""

    @abstractmethod
    def load_routes(self) -> dict:
        pass


class ConfigRouteLoader(RouteLoader):
    def __init__(self, config: dict):
        self.__config = config

    def load_routes(self):
        routes = self.__config.get(ROUTES_SECTION_PARAMETER) or {}
        if not isinstance(routes, dict):
            raise RouteConfigurationError('*', "'%s' section must be a mapping" % ROUTES_SECTION_PARAMETER)
        return routes


class FileRouteLoader(RouteLoader):
    def __init__(self, path_to_file):
        self.__path = path_to_file

    def load_routes(self):
        content = TBUtility.load_file(self.__path)
        log.debug("Loaded routes from %s", self.__path)
        return ConfigRouteLoader(content if ROUTES_SECTION_PARAMETER in content
                                 else {ROUTES_SECTION_PARAMETER: content}).load_routes()


def build_routes(route_loader: RouteLoader, registry):
    routes = {}
    for route_id, route_config in route_loader.load_routes().items():
        routes[route_id] = Route.from_config(route_id, route_config, registry)
        log.info("Route '%s' loaded with %d script(s)", route_id, len(routes[route_id].script_ids))
    return routes
