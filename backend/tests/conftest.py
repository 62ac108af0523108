"""Shared fixtures: a fake switch speaking the SNMP capability interface."""
from __future__ import annotations

from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry
from pysnmp.proto.rfc1902 import Counter32, Counter64, OctetString

from disco.archive import ArchiveWriter
from disco.config import MetricConfig
from disco.discovery import MACHINE, UPLINK, Interface
from disco.errors import SNMPError
from disco.metrics import Metrics

TARGET = "s1-abc0t.measurement-lab.org"
HOSTNAME = "mlab2-abc0t.mlab-sandbox.measurement-lab.org"
MACHINE_NAME = "mlab2"

MACHINE_DESCR = "xe-0/0/12"
UPLINK_DESCR = "xe-0/0/45"

METRICS_CONFIG = [
    MetricConfig(
        name="ifHCInOctets",
        description="Ingress octets.",
        oid_stub=".1.3.6.1.2.1.31.1.1.1.6",
        mlab_uplink_name="switch.octets.uplink.rx",
        mlab_machine_name="switch.octets.local.rx",
    ),
    MetricConfig(
        name="ifOutDiscards",
        description="Egress discards.",
        oid_stub=".1.3.6.1.2.1.2.2.1.19",
        mlab_uplink_name="switch.discards.uplink.tx",
        mlab_machine_name="switch.discards.local.tx",
    ),
]

OCTETS_MACHINE = "1.3.6.1.2.1.31.1.1.1.6.524"
OCTETS_UPLINK = "1.3.6.1.2.1.31.1.1.1.6.568"
DISCARDS_MACHINE = "1.3.6.1.2.1.2.2.1.19.524"
DISCARDS_UPLINK = "1.3.6.1.2.1.2.2.1.19.568"

IF_ALIAS_WALK = [
    ("1.3.6.1.2.1.31.1.1.1.18.510", OctetString(b"")),
    ("1.3.6.1.2.1.31.1.1.1.18.524", OctetString(b"mlab2")),
    ("1.3.6.1.2.1.31.1.1.1.18.530", OctetString(b"mlab3")),
    ("1.3.6.1.2.1.31.1.1.1.18.568", OctetString(b"uplink-10g ")),
]

IF_DESCR = {
    "1.3.6.1.2.1.2.2.1.2.524": OctetString(MACHINE_DESCR.encode()),
    "1.3.6.1.2.1.2.2.1.2.568": OctetString(UPLINK_DESCR.encode()),
}

COUNTERS_RUN1 = {
    DISCARDS_MACHINE: Counter32(0),
    DISCARDS_UPLINK: Counter32(3),
    OCTETS_MACHINE: Counter64(275),
    OCTETS_UPLINK: Counter64(437),
}

COUNTERS_RUN2 = {
    DISCARDS_MACHINE: Counter32(0),
    DISCARDS_UPLINK: Counter32(8),
    OCTETS_MACHINE: Counter64(511),
    OCTETS_UPLINK: Counter64(624),
}


class FakeSwitch:
    """
    In-memory stand-in for SwitchSNMP.

    `counters` is a list of per-run readings; each batched counter GET
    consumes the next run (the last one repeats). Setting `fail_get`
    makes counter GETs raise SNMPError.
    """

    def __init__(self, counters=None, walk=None, descr=None, dotted_names=False):
        self.runs = list(counters or [COUNTERS_RUN1, COUNTERS_RUN2])
        self.walk = IF_ALIAS_WALK if walk is None else walk
        self.descr = IF_DESCR if descr is None else descr
        self.dotted_names = dotted_names
        self.fail_walk = False
        self.fail_get = False
        self.get_calls = 0
        self.connected = False
        self.closed = False

    async def connect(self):
        self.connected = True

    def close(self):
        self.closed = True

    async def bulk_walk_all(self, root_oid):
        if self.fail_walk:
            raise SNMPError("Request timed out")
        return list(self.walk)

    async def get(self, oids):
        keys = [oid.lstrip(".") for oid in oids]
        if len(keys) == 1 and keys[0] in self.descr:
            return [(keys[0], self.descr[keys[0]])]

        if self.fail_get:
            raise SNMPError("Request timed out")
        run = self.runs[min(self.get_calls, len(self.runs) - 1)]
        self.get_calls += 1
        prefix = "." if self.dotted_names else ""
        return [(prefix + key, run[key]) for key in keys if key in run]


@pytest.fixture
def interfaces():
    return {
        MACHINE: Interface(MACHINE, "524", MACHINE_DESCR),
        UPLINK: Interface(UPLINK, "568", UPLINK_DESCR),
    }


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def archive_writer(tmp_path: Path):
    return ArchiveWriter(str(tmp_path), HOSTNAME)


@pytest.fixture
def store(interfaces, registry, archive_writer):
    return Metrics(METRICS_CONFIG, interfaces, TARGET, HOSTNAME, archive=archive_writer, registry=registry)
