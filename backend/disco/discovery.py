"""
Interface discovery.

Finds the switch ports facing this machine and the uplink by walking the
ifAlias column, then looks up ifDescr for each to get a human-readable
interface name for metric labels.
"""
import logging
from dataclasses import dataclass
from typing import Dict

from .errors import DiscoveryError, SNMPError
from .snmp_helpers import decode_octets
from .snmp_oids import IF_ALIAS_OID, IF_DESCR_OID, create_oid, oid_index

logger = logging.getLogger(__name__)

MACHINE = "machine"
UPLINK = "uplink"
SCOPES = (MACHINE, UPLINK)

UPLINK_ALIAS_PREFIX = "uplink"


@dataclass(frozen=True)
class Interface:
    scope: str
    index: str
    descr: str


def match_scopes(pdus, machine: str) -> Dict[str, str]:
    """Map scope -> ifIndex from ifAlias walk results. The last match wins."""
    indexes: Dict[str, str] = {}
    for oid, value in pdus:
        alias = decode_octets(value)
        if alias == machine:
            indexes[MACHINE] = oid_index(oid)
        if alias.startswith(UPLINK_ALIAS_PREFIX):
            indexes[UPLINK] = oid_index(oid)
    return indexes


async def discover_interfaces(snmp, machine: str) -> Dict[str, Interface]:
    """
    Resolve the machine and uplink interfaces of the switch.

    Args:
        snmp: object providing async bulk_walk_all() and get()
        machine: short machine name, as set in the machine port's ifAlias

    Returns:
        Dictionary of {scope: Interface} with one entry per scope

    Raises:
        DiscoveryError: if the walk fails or either scope is not found
    """
    try:
        pdus = await snmp.bulk_walk_all(IF_ALIAS_OID)
    except SNMPError as e:
        raise DiscoveryError(f"failed to walk ifAlias ({IF_ALIAS_OID}): {e}") from e

    indexes = match_scopes(pdus, machine)
    missing = [scope for scope in SCOPES if scope not in indexes]
    if missing:
        raise DiscoveryError(
            f"no interface found for {', '.join(missing)} "
            f"(machine alias {machine!r}, {len(pdus)} aliases walked)"
        )

    interfaces: Dict[str, Interface] = {}
    for scope in SCOPES:
        iface = indexes[scope]
        descr_oid = create_oid(IF_DESCR_OID, iface)
        try:
            var_binds = await snmp.get([descr_oid])
        except SNMPError as e:
            raise DiscoveryError(f"failed to read ifDescr for {scope} interface {iface}: {e}") from e
        if not var_binds:
            raise DiscoveryError(f"empty ifDescr response for {scope} interface {iface}")

        interfaces[scope] = Interface(scope=scope, index=iface, descr=decode_octets(var_binds[0][1]))
        logger.info(f"Discovered {scope} interface: ifIndex={iface} ifDescr={interfaces[scope].descr}")

    return interfaces
