"""
Configuration for the switch collector.

Settings come from environment variables (optionally a local .env file,
loaded with python-dotenv). Metric definitions come from a YAML file:

    - name: ifHCInOctets
      description: Ingress octets.
      oidStub: .1.3.6.1.2.1.31.1.1.1.6
      mlabUplinkName: switch.octets.uplink.rx
      mlabMachineName: switch.octets.local.rx
"""
import os
import socket
from dataclasses import dataclass
from typing import List

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


@dataclass(frozen=True)
class MetricConfig:
    name: str
    description: str
    oid_stub: str
    mlab_uplink_name: str
    mlab_machine_name: str


# YAML key -> MetricConfig field
_METRIC_FIELDS = {
    "name": "name",
    "description": "description",
    "oidStub": "oid_stub",
    "mlabUplinkName": "mlab_uplink_name",
    "mlabMachineName": "mlab_machine_name",
}


def parse_metrics(raw) -> List[MetricConfig]:
    if not isinstance(raw, list):
        raise ConfigError(f"metric config must be a list of metrics, got {type(raw).__name__}")

    metrics = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigError(f"metric #{i} is not a mapping")
        missing = [key for key in _METRIC_FIELDS if not entry.get(key)]
        if missing:
            raise ConfigError(f"metric #{i} ({entry.get('name', '?')}) is missing: {', '.join(missing)}")
        metrics.append(MetricConfig(**{attr: str(entry[key]) for key, attr in _METRIC_FIELDS.items()}))
    return metrics


def load_metrics_config(path: str) -> List[MetricConfig]:
    """Load metric definitions from a YAML file."""
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Error reading YAML config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config {path}: {e}") from e

    return parse_metrics(raw)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


@dataclass
class Settings:
    """
    Process settings.

    Environment variables (with defaults):

    - DISCO_TARGET:           switch address, also the archive "experiment"
    - DISCO_COMMUNITY:        SNMPv2c community string
    - DISCO_METRICS:          path to the YAML metric definitions
    - DISCO_LISTEN_ADDRESS:   exposition listen address (default ":8888")
    - DISCO_WRITE_INTERVAL:   archive flush period in seconds (default 300)
    - DISCO_COLLECT_INTERVAL: SNMP polling period in seconds (default 10)
    - DISCO_DATA_DIR:         archive base directory (default ".")
    - DISCO_HOSTNAME:         node hostname (default: the OS hostname)
    - SNMP_TIMEOUT:           per-request timeout in seconds (default 2)
    - SNMP_RETRIES:           transport retries (default 1)
    """

    target: str
    community: str
    metrics_file: str
    hostname: str
    listen_address: str = ":8888"
    write_interval: int = 300
    collect_interval: int = 10
    data_dir: str = "."
    snmp_port: int = 161
    snmp_timeout: int = 2
    snmp_retries: int = 1

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        load_dotenv()

        values = {
            "target": os.getenv("DISCO_TARGET", ""),
            "community": os.getenv("DISCO_COMMUNITY", ""),
            "metrics_file": os.getenv("DISCO_METRICS", ""),
            "hostname": os.getenv("DISCO_HOSTNAME") or socket.gethostname(),
            "listen_address": os.getenv("DISCO_LISTEN_ADDRESS", ":8888"),
            "write_interval": _int_env("DISCO_WRITE_INTERVAL", 300),
            "collect_interval": _int_env("DISCO_COLLECT_INTERVAL", 10),
            "data_dir": os.getenv("DISCO_DATA_DIR", "."),
            "snmp_port": _int_env("SNMP_PORT", 161),
            "snmp_timeout": _int_env("SNMP_TIMEOUT", 2),
            "snmp_retries": _int_env("SNMP_RETRIES", 1),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self):
        if not self.target:
            raise ConfigError("Environment variable not set: DISCO_TARGET")
        if not self.community:
            raise ConfigError("Environment variable not set: DISCO_COMMUNITY")
        if not self.metrics_file:
            raise ConfigError("No metric definitions given: set DISCO_METRICS or --metrics")
        if len(self.hostname) < 5:
            raise ConfigError(f"Hostname {self.hostname!r} is too short to derive a machine name")
        if self.write_interval <= 0 or self.collect_interval <= 0:
            raise ConfigError("Collect and write intervals must be positive")

    @property
    def machine(self) -> str:
        # "mlab2-abc0t.mlab-sandbox.measurement-lab.org" -> "mlab2"
        return self.hostname[:5]

    def listen_host_port(self) -> tuple:
        host, _, port = self.listen_address.rpartition(":")
        try:
            return host or "0.0.0.0", int(port)
        except ValueError:
            raise ConfigError(f"Invalid listen address: {self.listen_address!r}")


def settings_from_args(args) -> Settings:
    """Build Settings from parsed command-line flags, falling back to the environment."""
    return Settings.from_env(
        metrics_file=getattr(args, "metrics", None),
        listen_address=getattr(args, "listen_address", None),
        write_interval=getattr(args, "write_interval", None),
        data_dir=getattr(args, "data_dir", None),
    )
