"""
Address Resolver

Workload status propagation is eventually consistent: a workload can be
reported as scheduled before its address is populated. The resolver keeps
polling until a well-formed address shows up or the budget runs out.
"""

import ipaddress
import logging
from typing import Optional

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.errors import AddressResolutionTimeout, ExternalCommandError
from ovn_e2e.metrics import METRICS
from ovn_e2e.retry import DEFAULT_CLOCK, Clock, RetryBudget

logger = logging.getLogger(__name__)


def parse_address(candidate: Optional[str]) -> Optional[str]:
    """Return the normalized address, or None if the value is not an IP."""
    if not candidate:
        return None
    try:
        return str(ipaddress.ip_address(candidate.strip().strip("'")))
    except ValueError:
        return None


class AddressResolver:
    def __init__(self, cluster: ClusterClient, budget: RetryBudget, clock: Clock = DEFAULT_CLOCK):
        self.cluster = cluster
        self.budget = budget
        self.clock = clock

    async def resolve(self, namespace: str, name: str) -> str:
        target = f"{namespace}/{name}"
        last_seen: Optional[str] = None

        for attempt in range(1, self.budget.max_attempts + 1):
            METRICS["poll_attempts"].labels(loop="address").inc()
            try:
                workload = await self.cluster.get_workload(namespace, name)
                last_seen = workload.pod_ip
            except ExternalCommandError as e:
                logger.warning(f"Warning unable to query the test workload {target}: {e}")
            else:
                address = parse_address(last_seen)
                if address:
                    logger.info(f"Address of {target} is {address}")
                    return address

            if attempt < self.budget.max_attempts:
                logger.info(f"Retry attempt {attempt} to get address from initializing workload {target}")
                await self.clock.sleep(self.budget.interval)

        raise AddressResolutionTimeout(target, self.budget.max_attempts, last_seen)
