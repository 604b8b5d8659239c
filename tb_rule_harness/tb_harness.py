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

import sys
from os import environ, path

from simplejson import dumps, loads
from termcolor import colored

from tb_rule_harness.harness.constant_enums import Disposition
from tb_rule_harness.harness.constants import CONFIG_DIR_ENV_VARIABLE, CONFIG_FILENAME
from tb_rule_harness.harness.tb_harness_service import TBHarnessService

DISPOSITION_COLORS = {
    Disposition.DELIVERED: 'green',
    Disposition.DROPPED: 'yellow',
    Disposition.ERRORED: 'red',
}


def main():
    """
    Replays messages through the configured routes and prints one report per run.
    Usage: tb-rule-harness [messages.json|-] [--json]
    """
    args = [arg for arg in sys.argv[1:] if not arg.startswith('--')]
    json_output = '--json' in sys.argv[1:]
    source = args[0] if args else '-'

    config_path = __get_config_path(path.dirname(path.abspath(__file__)) + '/config/'.replace('/', path.sep))
    service = TBHarnessService(config_path + CONFIG_FILENAME)
    exit_code = 0
    try:
        for entry in read_messages(source):
            run = service.submit(entry.get('msgType', 'POST_TELEMETRY_REQUEST'), get_raw_payload(entry),
                                 entry.get('metadata', {}), entry.get('routeId'))
            if run.disposition is Disposition.ERRORED:
                exit_code = 1
            print(dumps(run.to_dict()) if json_output else format_run(run))
    finally:
        service.stop()
    return exit_code


def __get_config_path(default_config_path):
    config_path = environ.get(CONFIG_DIR_ENV_VARIABLE, default_config_path)
    if not config_path.endswith(path.sep):
        config_path += path.sep
    return config_path


def read_messages(source):
    """Reads a JSON array of messages or JSON lines from a file or stdin."""
    if source == '-':
        content = sys.stdin.read()
    else:
        with open(source, 'r', encoding='utf-8') as file:
            content = file.read()

    content = content.strip()
    if not content:
        return []
    if content.startswith('['):
        return loads(content)
    return [loads(line) for line in content.splitlines() if line.strip()]


def get_raw_payload(entry):
    if entry.get('payloadHex') is not None:
        return bytes.fromhex(entry['payloadHex'])
    if entry.get('payloadText') is not None:
        return entry['payloadText'].encode('utf-8')
    payload = entry.get('payload', {})
    if isinstance(payload, str):
        return payload.encode('utf-8')
    return payload


def format_run(run):
    status = colored(run.disposition.value.upper(), DISPOSITION_COLORS[run.disposition])
    line = "%s route=%s run=%s %.1f ms" % (status, run.route_id, run.run_id, run.elapsed_ms)
    details = []
    for outcome in run.stages:
        details.append("    %-12s %-24s %-20s %.1f ms" % (outcome.stage.value, outcome.script_id,
                                                         outcome.result.to_dict()['type'], outcome.elapsed_ms))
    if run.error is not None:
        details.append(colored("    %s" % run.error, 'red'))
    if run.output_message is not None:
        details.append("    output: %s" % dumps(run.output_message.to_dict()))
    return '\n'.join([line] + details)


if __name__ == '__main__':
    sys.exit(main())
