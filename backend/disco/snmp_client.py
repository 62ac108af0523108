"""
SNMP client for the switch target, using the pysnmp asyncio API.

Provides the two operations the collector needs:
- bulk_walk_all() - every (oid, value) pair under a subtree, via GETBULK
- get()           - one batched GET for a set of fully-qualified OIDs

Values are returned as raw pysnmp rfc1902 objects (lookupMib=False) so that
callers can tell Counter32 from Counter64 and OctetString apart.
"""
import asyncio
import logging
from typing import Any, List, Optional, Tuple

from pysnmp.hlapi.v3arch.asyncio import (
    bulk_cmd,
    get_cmd,
    SnmpEngine,
    CommunityData,
    UdpTransportTarget,
    ContextData,
    ObjectType,
    ObjectIdentity,
)

from .errors import SNMPError
from .snmp_oids import normalize_oid

logger = logging.getLogger(__name__)

VarBind = Tuple[str, Any]

# pysnmp markers for a missing or exhausted OID
_END_OF_DATA = ("NoSuchObject", "NoSuchInstance", "EndOfMibView")


class SwitchSNMP:

    def __init__(
        self,
        target: str,
        community: str,
        port: int = 161,
        timeout: int = 2,
        retries: int = 1,
        max_repetitions: int = 25,
    ):
        self.target = target
        self.community = community
        self.port = port
        self.timeout = timeout
        self.retries = retries
        self.max_repetitions = max_repetitions

        self.engine: Optional[SnmpEngine] = None
        self.transport: Optional[UdpTransportTarget] = None

    async def connect(self):
        """Create the SNMP engine and UDP transport. Must run on the polling loop."""
        self.engine = SnmpEngine()
        self.transport = await UdpTransportTarget.create(
            (self.target, self.port), timeout=self.timeout, retries=self.retries
        )
        logger.info(
            f"SNMP client ready for {self.target}:{self.port} "
            f"(timeout={self.timeout}s, retries={self.retries})"
        )

    def close(self):
        if self.engine is not None:
            self.engine.close_dispatcher()
            self.engine = None
            self.transport = None
            logger.info("SNMP client closed")

    def _session(self):
        if self.engine is None or self.transport is None:
            raise SNMPError("SNMP client is not connected")
        # SNMP v2c
        return self.engine, CommunityData(self.community, mpModel=1), self.transport

    def _total_timeout(self) -> float:
        return self.timeout * (self.retries + 1)

    async def get(self, oids: List[str]) -> List[VarBind]:
        """
        Query multiple OIDs from the switch in one request.

        Args:
            oids: fully-qualified OID strings

        Returns:
            List of (oid_string, raw_value) in response order

        Raises:
            SNMPError: on timeout, error indication or error status
        """
        engine, auth, transport = self._session()
        oid_objects = [ObjectType(ObjectIdentity(normalize_oid(oid))) for oid in oids]

        try:
            error_indication, error_status, error_index, var_binds = await asyncio.wait_for(
                get_cmd(
                    engine,
                    auth,
                    transport,
                    ContextData(),
                    *oid_objects,
                    lookupMib=False,
                ),
                timeout=self._total_timeout(),
            )
        except asyncio.TimeoutError:
            raise SNMPError(f"SNMP GET timed out for {self.target} ({len(oids)} OIDs)")

        if error_indication:
            raise SNMPError(f"SNMP GET error: {error_indication}")
        if error_status:
            at = error_index and var_binds[int(error_index) - 1][0] or "?"
            raise SNMPError(f"SNMP GET error: {error_status.prettyPrint()} at {at}")

        return [(str(oid), value) for oid, value in var_binds]

    async def bulk_walk_all(self, root_oid: str) -> List[VarBind]:
        """Walk the whole subtree under root_oid with repeated GETBULK requests."""
        engine, auth, transport = self._session()
        root = normalize_oid(root_oid)
        results: List[VarBind] = []
        current_oid = root

        while True:
            try:
                error_indication, error_status, error_index, var_binds = await asyncio.wait_for(
                    bulk_cmd(
                        engine,
                        auth,
                        transport,
                        ContextData(),
                        0,  # non-repeaters
                        self.max_repetitions,
                        ObjectType(ObjectIdentity(current_oid)),
                        lookupMib=False,
                    ),
                    timeout=self._total_timeout(),
                )
            except asyncio.TimeoutError:
                raise SNMPError(f"SNMP WALK timed out for {self.target} at {current_oid}")

            if error_indication:
                raise SNMPError(f"SNMP WALK error: {error_indication}")
            if error_status:
                raise SNMPError(f"SNMP WALK error: {error_status.prettyPrint()}")

            if not var_binds:
                return results

            for oid, value in var_binds:
                oid_str = str(oid)
                # Stop once we've left the root subtree
                if not oid_str.startswith(root + "."):
                    return results
                if value.__class__.__name__ in _END_OF_DATA:
                    return results
                results.append((oid_str, value))
                current_oid = oid_str
