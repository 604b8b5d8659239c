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

from dataclasses import dataclass
from typing import Optional, Tuple

from tb_rule_harness.harness.constant_enums import ScriptKind
from tb_rule_harness.harness.constants import ROUTE_DECODER_PARAMETER, ROUTE_FILTERS_PARAMETER, \
    ROUTE_TRANSFORMS_PARAMETER, ROUTE_ENRICHERS_PARAMETER
from tb_rule_harness.harness.exceptions import RouteConfigurationError

STAGE_KINDS = {
    ROUTE_FILTERS_PARAMETER: ScriptKind.FILTER,
    ROUTE_TRANSFORMS_PARAMETER: ScriptKind.TRANSFORM,
    ROUTE_ENRICHERS_PARAMETER: ScriptKind.TRANSFORM,
}


@dataclass(frozen=True)
class Route:
    route_id: str
    decoder: Optional[str] = None
    filters: Tuple[str, ...] = ()
    transforms: Tuple[str, ...] = ()
    enrichers: Tuple[str, ...] = ()

    @property
    def script_ids(self):
        return ((self.decoder,) if self.decoder else ()) + self.filters + self.transforms + self.enrichers

    @staticmethod
    def from_config(route_id, config, registry):
        """
        Builds a route either from a mapping of stage lists or from a flat ordered list of script ids,
        in which case the ids are grouped by their registered kind keeping their order.
        Every id must be registered and of the kind its stage expects.
        """
        if isinstance(config, (list, tuple)):
            return Route._from_list(route_id, config, registry)
        if not isinstance(config, dict):
            raise RouteConfigurationError(route_id, "expected a list of script ids or a mapping of stages")

        unknown_sections = set(config) - set(STAGE_KINDS) - {ROUTE_DECODER_PARAMETER}
        if unknown_sections:
            raise RouteConfigurationError(route_id, "unknown section(s): %s" % ', '.join(sorted(unknown_sections)))

        decoder = config.get(ROUTE_DECODER_PARAMETER)
        if decoder is not None:
            Route._check_kind(route_id, decoder, ScriptKind.DECODER, registry)

        stages = {}
        for section, kind in STAGE_KINDS.items():
            script_ids = config.get(section) or []
            if not isinstance(script_ids, (list, tuple)):
                raise RouteConfigurationError(route_id, "'%s' must be a list of script ids" % section)
            for script_id in script_ids:
                Route._check_kind(route_id, script_id, kind, registry)
            stages[section] = tuple(script_ids)

        return Route(route_id=route_id, decoder=decoder,
                     filters=stages[ROUTE_FILTERS_PARAMETER],
                     transforms=stages[ROUTE_TRANSFORMS_PARAMETER],
                     enrichers=stages[ROUTE_ENRICHERS_PARAMETER])

    @staticmethod
    def _from_list(route_id, script_ids, registry):
        decoders, filters, transforms = [], [], []
        for script_id in script_ids:
            definition = registry.lookup(script_id)
            if definition is None:
                raise RouteConfigurationError(route_id, "script '%s' is not registered" % script_id)
            if definition.kind is ScriptKind.DECODER:
                decoders.append(script_id)
            elif definition.kind is ScriptKind.FILTER:
                filters.append(script_id)
            else:
                transforms.append(script_id)

        if len(decoders) > 1:
            raise RouteConfigurationError(route_id, "only one decoder is allowed, got %s" % ', '.join(decoders))

        return Route(route_id=route_id, decoder=decoders[0] if decoders else None,
                     filters=tuple(filters), transforms=tuple(transforms))

    @staticmethod
    def _check_kind(route_id, script_id, kind, registry):
        definition = registry.lookup(script_id)
        if definition is None:
            raise RouteConfigurationError(route_id, "script '%s' is not registered" % script_id)
        if definition.kind is not kind:
            raise RouteConfigurationError(route_id, "script '%s' is a %s, expected a %s"
                                          % (script_id, definition.kind.value, kind.value))
