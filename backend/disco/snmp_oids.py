
# =============================================================================
# IF-MIB (1.3.6.1.2.1.31) - RFC 2863
# Interface naming and 64-bit counters
# Note: These are table OIDs - append .{ifIndex} to get specific interface
# =============================================================================

IF_X_TABLE = {
    "ifName": "1.3.6.1.2.1.31.1.1.1.1",         # Short interface name
    "ifHCInOctets": "1.3.6.1.2.1.31.1.1.1.6",   # 64-bit bytes in
    "ifHCOutOctets": "1.3.6.1.2.1.31.1.1.1.10", # 64-bit bytes out
    "ifAlias": "1.3.6.1.2.1.31.1.1.1.18",       # Operator-assigned alias ("mlab2", "uplink-10g")
}

# =============================================================================
# INTERFACES MIB (1.3.6.1.2.1.2) - RFC 1213
# =============================================================================

INTERFACES = {
    "ifDescr": "1.3.6.1.2.1.2.2.1.2",         # Interface description (e.g., "xe-0/0/12")
    "ifInDiscards": "1.3.6.1.2.1.2.2.1.13",   # Inbound packets discarded (32-bit counter)
    "ifInErrors": "1.3.6.1.2.1.2.2.1.14",     # Inbound packets with errors
    "ifOutDiscards": "1.3.6.1.2.1.2.2.1.19",  # Outbound packets discarded
    "ifOutErrors": "1.3.6.1.2.1.2.2.1.20",    # Outbound packets with errors
}

IF_ALIAS_OID = IF_X_TABLE["ifAlias"]
IF_DESCR_OID = INTERFACES["ifDescr"]

# Placeholder accepted in metric oidStub values
IFACE_PLACEHOLDER = "IFACE"


def normalize_oid(oid: str) -> str:
    """Strip the leading dot so ".1.3.6" and "1.3.6" key the same entry."""
    return oid.strip().lstrip(".")


def create_oid(oid_stub: str, iface: str) -> str:
    if IFACE_PLACEHOLDER in oid_stub:
        return normalize_oid(oid_stub.replace(IFACE_PLACEHOLDER, iface, 1))
    return f"{normalize_oid(oid_stub)}.{iface}"


def oid_index(oid: str) -> str:
    """Return the trailing arc of an OID, the ifIndex for IF-MIB table rows."""
    return oid.rsplit(".", 1)[-1]
