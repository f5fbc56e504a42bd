#!/usr/bin/env python3
"""
In-workload Command Templates

Renders the shell snippets executed inside probe workloads:
- Bounded TCP reachability loop (nc)
- Bounded ICMP reachability check (ping / ping6)
- Idle sleeper used as a ping destination or exec target

Values interpolated into a shell line are sanitized first.
"""

import re
from enum import Enum
from typing import Any, List

from jinja2 import Template

CONTINUOUS_CONNECT_TEMPLATE = Template(
    "set -xe; for i in $(seq 1 {{ attempts }}); do "
    "nc -vz -w {{ timeout }} {{ host }} {{ port }}; sleep {{ delay }}; done"
)

# -c sends 3 pings, -W waits at most 2 seconds for a reply, -w is the deadline
PING_TEMPLATE = Template(
    "sleep {{ warmup }}; {{ ping }} -c 3 -W 2 -w {{ timeout }} {{ host }}"
)

IDLE_COMMAND = ["bash", "-c", "sleep 20000"]


class PingCommand(Enum):
    IPV4 = "ping"
    IPV6 = "ping6"


def sanitize_address(input_val: Any) -> str:
    """
    Strip characters that are not valid in a hostname, IPv4 or IPv6 address.
    Example: "8.8.8.8" -> "8.8.8.8"
    Example: "8.8.8.8; reboot" -> "8.8.8.8reboot"
    """
    if not isinstance(input_val, str):
        return ""
    return re.sub(r"[^a-zA-Z0-9_.:-]", "", input_val)


def validate_numeric(input_val: Any) -> int:
    if isinstance(input_val, bool) or not isinstance(input_val, int) or input_val < 0:
        raise ValueError(f"expected a non-negative integer, got {input_val!r}")
    return input_val


def continuous_connect_command(host: str, port: int, attempts: int, timeout: int, delay: int) -> List[str]:
    script = CONTINUOUS_CONNECT_TEMPLATE.render(
        host=sanitize_address(host),
        port=validate_numeric(port),
        attempts=validate_numeric(attempts),
        timeout=validate_numeric(timeout),
        delay=validate_numeric(delay),
    )
    return ["bash", "-c", script]


def ping_args(host: str, ping: PingCommand, timeout: int, warmup: int) -> List[str]:
    return [
        PING_TEMPLATE.render(
            host=sanitize_address(host),
            ping=ping.value,
            timeout=validate_numeric(timeout),
            warmup=validate_numeric(warmup),
        )
    ]


def exec_ping_argv(host: str, deadline: int) -> List[str]:
    return ["ping", "-w", str(validate_numeric(deadline)), sanitize_address(host)]
