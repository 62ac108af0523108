"""disco - switch SNMP counter collector and archiver."""

__version__ = "0.1.0"
