"""
Counter state, collection and archival for the switch target.

A Metrics object owns one OidEntry per (metric, scope) pair. Each collect()
cycle reads every tracked OID in one batched GET, turns the readings into
per-interval increases, feeds them to the Prometheus counters and buffers
them as samples. Each write() cycle appends the buffered samples to the
archive and empties the buffers. Both hold the same lock, so neither sees
the other half-way through.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from prometheus_client import CollectorRegistry, Counter

from .archive import ArchiveWriter, Sample, Series
from .config import MetricConfig
from .discovery import MACHINE, UPLINK, Interface, discover_interfaces
from .errors import ArchiveError, SNMPError
from .snmp_helpers import counter_delta, to_counter
from .snmp_oids import create_oid, normalize_oid

logger = logging.getLogger(__name__)


@dataclass
class OidEntry:
    name: str
    scope: str
    if_descr: str
    previous_value: int = 0
    series: Series = field(default_factory=lambda: Series("", "", ""))

    @property
    def samples(self) -> List[Sample]:
        return self.series.samples


class Metrics:

    def __init__(
        self,
        config: List[MetricConfig],
        interfaces: Dict[str, Interface],
        target: str,
        hostname: str,
        archive: Optional[ArchiveWriter] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self.target = target
        self.hostname = hostname
        self.machine = hostname[:5]
        self.interfaces = interfaces
        self.archive = archive or ArchiveWriter(hostname=hostname)
        self.registry = registry or CollectorRegistry()

        self.oids: Dict[str, OidEntry] = {}
        self.prom: Dict[str, Counter] = {}
        self.first_run = True
        self.lock = asyncio.Lock()

        # Bookkeeping for the health endpoint
        self.last_collect: Optional[datetime] = None
        self.last_write: Optional[datetime] = None
        self.skipped_cycles = 0

        for metric in config:
            output_names = {
                MACHINE: metric.mlab_machine_name,
                UPLINK: metric.mlab_uplink_name,
            }
            for scope, iface in interfaces.items():
                oid = create_oid(metric.oid_stub, iface.index)
                self.oids[oid] = OidEntry(
                    name=metric.name,
                    scope=scope,
                    if_descr=iface.descr,
                    series=Series(
                        experiment=target,
                        hostname=hostname,
                        metric=output_names[scope],
                    ),
                )

            if metric.name not in self.prom:
                self.prom[metric.name] = Counter(
                    metric.name,
                    metric.description,
                    labelnames=["node", "interface"],
                    registry=self.registry,
                )

        logger.info(f"Tracking {len(self.oids)} OIDs for {len(self.prom)} metrics on {target}")

    @classmethod
    async def create(
        cls,
        snmp,
        config: List[MetricConfig],
        target: str,
        hostname: str,
        archive: Optional[ArchiveWriter] = None,
        registry: Optional[CollectorRegistry] = None,
    ) -> "Metrics":
        """Discover the machine and uplink interfaces, then build the state store."""
        interfaces = await discover_interfaces(snmp, hostname[:5])
        return cls(config, interfaces, target, hostname, archive=archive, registry=registry)

    async def collect(self, snmp):
        """
        Poll every tracked OID once and record the increase since the last poll.

        A failed GET skips the whole cycle without touching any state; the next
        scheduled cycle picks up from the last good readings. The first cycle
        after startup only records baselines.

        Raises:
            CounterTypeError: if an OID reports something other than a counter
        """
        async with self.lock:
            try:
                var_binds = await snmp.get(list(self.oids))
            except SNMPError as e:
                self.skipped_cycles += 1
                logger.error(f"Skipping collection cycle for {self.target}: {e}")
                return

            # Validate the whole response before mutating anything
            readings = []
            for oid, value in var_binds:
                entry = self.oids.get(normalize_oid(oid))
                if entry is None:
                    logger.warning(f"Ignoring unexpected OID in response: {oid}")
                    continue
                readings.append((oid, entry, to_counter(value)))

            now = int(time.time())
            for oid, entry, current in readings:
                if current.value < entry.previous_value:
                    logger.warning(
                        f"Counter {entry.name} ({entry.scope}, {oid}) went backwards "
                        f"from {entry.previous_value} to {current.value}"
                    )
                increase = counter_delta(current, entry.previous_value)
                entry.previous_value = current.value

                if self.first_run:
                    continue

                self.prom[entry.name].labels(self.hostname, entry.if_descr).inc(increase)
                entry.samples.append(Sample(timestamp=now, value=increase))

            self.first_run = False
            self.last_collect = datetime.now()
            logger.debug(f"Collected {len(readings)} OIDs from {self.target}")

    async def write(self, interval: int) -> Optional[str]:
        """
        Append every OID's buffered samples to the archive and empty the buffers.

        If the archive cannot be written the buffers are kept, so the samples
        go out with the next write.

        Args:
            interval: length of the window being flushed, in seconds

        Returns:
            The archive file path, or None if the write failed
        """
        async with self.lock:
            try:
                path = self.archive.write([e.series for e in self.oids.values()], interval)
            except ArchiveError as e:
                pending = sum(len(entry.samples) for entry in self.oids.values())
                logger.error(f"Archive write failed, keeping {pending} samples for retry: {e}")
                return None

            for entry in self.oids.values():
                entry.series.samples = []

            self.last_write = datetime.now()
            logger.info(f"Archived {len(self.oids)} series to {path}")
            return path

    def status(self) -> Dict[str, object]:
        return {
            "target": self.target,
            "hostname": self.hostname,
            "first_run": self.first_run,
            "tracked_oids": len(self.oids),
            "pending_samples": sum(len(e.samples) for e in self.oids.values()),
            "skipped_cycles": self.skipped_cycles,
            "last_collect": self.last_collect.isoformat() if self.last_collect else None,
            "last_write": self.last_write.isoformat() if self.last_write else None,
            "interfaces": {
                scope: {"ifIndex": iface.index, "ifDescr": iface.descr}
                for scope, iface in self.interfaces.items()
            },
        }
