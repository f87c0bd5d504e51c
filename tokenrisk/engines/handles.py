"""
ADA Handle resolution for top holders.

A handle lives on a payment address, so each stake identity is expanded to
its connected payment addresses (reusing the ones the deep dive already
fetched) and each address is checked for handle-policy assets.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Any

from tokenrisk.core.constants import HANDLE_RESOLUTION_LIMIT, HANDLE_ADDRESSES_PER_STAKE
from tokenrisk.gateway.models import HolderRecord

logger = logging.getLogger("engines.handles")


@dataclass
class HandleResolution:
    # stake identity -> [{"address": ..., "handle": ...}]
    by_stake: Dict[str, List[Dict[str, str]]] = field(default_factory=dict)
    holders_checked: int = 0

    @property
    def resolved_handles(self) -> int:
        return sum(len(v) for v in self.by_stake.values())

    def primary_handle(self, stake_identity: str):
        entries = self.by_stake.get(stake_identity)
        return entries[0]["handle"] if entries else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolvedHandles": self.resolved_handles,
            "stakesWithHandles": len(self.by_stake),
            "holdersChecked": self.holders_checked,
            "stakeHandleGroups": self.by_stake,
        }


async def resolve_holder_handles(
    holders: List[HolderRecord],
    gateway,
    known_addresses: Dict[str, List[str]] = None,
    limit: int = HANDLE_RESOLUTION_LIMIT,
    addresses_per_stake: int = HANDLE_ADDRESSES_PER_STAKE,
) -> HandleResolution:
    known_addresses = known_addresses or {}
    result = HandleResolution()

    for holder in holders[:limit]:
        result.holders_checked += 1
        try:
            addresses = known_addresses.get(holder.stake_identity)
            if addresses is None:
                addresses = await gateway.stake_addresses(holder.stake_identity)
            found = []
            for address in addresses[:addresses_per_stake]:
                for handle in await gateway.resolve_handles(address):
                    found.append({"address": address, "handle": handle})
            if found:
                result.by_stake[holder.stake_identity] = found
        except Exception as e:
            logger.error(f"Handle lookup failed for {holder.stake_identity[:16]}...: {e}")

    return result
