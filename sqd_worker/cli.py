"""Command-line and environment configuration of the worker."""

from __future__ import annotations

import argparse
import enum
import ipaddress
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class Network(str, enum.Enum):
    TETHYS = "tethys"
    MAINNET = "mainnet"


_BOOT_NODES = {
    Network.TETHYS: [
        "12D3KooWSRvKpvNbsrGbLXGFZV7GYdcrYNh4W2nipwHHMYikzV58 /dns4/testnet.subsquid.io/udp/22445/quic-v1",
        "12D3KooWQC9tPzj2ShLn39RFHS5SGbvbP2pEd7bJ61kSW2LwxGSB /dns4/testnet.subsquid.io/udp/22446/quic-v1",
    ],
    Network.MAINNET: [
        "12D3KooW9tLMANc4Vnxp27Ypyq8m8mUv45nASahj3eSnMbGWSk1b /dns4/mainnet.subsquid.io/udp/22445/quic-v1",
        "12D3KooWEhPC7rsHAcifstVwJ3Cj55sWn7zXWuHrtAQUCGhGYnQz /dns4/mainnet.subsquid.io/udp/22446/quic-v1",
        "12D3KooWS5N8ygU6fRy4EZtzdHf4QZnkCaZrwCha9eYKH3LwNvsP /dns4/mainnet.subsquid.io/udp/32445/quic-v1",
    ],
}

_ASSIGNMENT_URLS = {
    Network.MAINNET: "https://metadata.sqd-datasets.io/network-state-mainnet.json",
    Network.TETHYS: "https://metadata.sqd-datasets.io/network-state-tethys.json",
}


def parse_seconds(text: str) -> timedelta:
    """Parse a whole, non-negative number of seconds."""
    text = text.strip()
    if not text.isdigit():
        raise ValueError(f"Invalid number of seconds: '{text}'")
    return timedelta(seconds=int(text))


def _parse_bool(text: str) -> bool:
    lowered = text.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no", ""):
        return False
    raise ValueError(f"Invalid boolean: '{text}'")


def _parse_list(text: str) -> List[str]:
    return [item.strip() for item in text.split(",") if item.strip()]


@dataclass
class Args:
    data_dir: Path
    prometheus_port: int = 8000
    p2p_port: int = 12345
    public_ip: Optional[str] = None
    parallel_queries: int = 20
    concurrent_downloads: int = 3
    query_threads: Optional[int] = None
    assignment_url: str = ""
    heartbeat_interval: timedelta = timedelta(seconds=55)
    network_polling_interval: timedelta = timedelta(seconds=30)
    assignment_check_interval: timedelta = timedelta(seconds=60)
    assignment_fetch_timeout: timedelta = timedelta(seconds=90)
    log_span_durations: bool = False
    network: Network = Network.MAINNET
    boot_nodes: List[str] = field(default_factory=list)
    p2p_listen_addrs: List[str] = field(default_factory=list)
    p2p_public_addrs: List[str] = field(default_factory=list)
    sentry_dsn: Optional[str] = None
    sentry_traces_sample_rate: float = 0.001

    def fill_defaults(self) -> None:
        """Fill network-dependent defaults that were not given explicitly."""
        if not self.boot_nodes:
            self.boot_nodes.extend(_BOOT_NODES[self.network])

        if not self.p2p_listen_addrs:
            self.p2p_listen_addrs.append(f"/ip4/0.0.0.0/udp/{self.p2p_port}/quic-v1")
        else:
            logger.warning("Overriding P2P port with P2P_LISTEN_ADDRS")

        if self.public_ip is not None:
            if not self.p2p_public_addrs:
                try:
                    ipaddress.IPv4Address(self.public_ip)
                except ValueError as err:
                    raise ValueError("Invalid public IP") from err
                self.p2p_public_addrs.append(
                    f"/ip4/{self.public_ip}/udp/{self.p2p_port}/quic-v1"
                )
            else:
                logger.warning("Overriding provided public IP with P2P_PUBLIC_ADDRS")

        if not self.assignment_url:
            self.assignment_url = _ASSIGNMENT_URLS[self.network]


def _option(parser, flags, env, environ, type_, default, help_=None, **kwargs):
    if env in environ:
        default = type_(environ[env])
    parser.add_argument(*flags, type=type_, default=default, help=help_, **kwargs)


def parse_args(
    argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> Args:
    """Build ``Args`` from command-line flags, falling back to environment variables."""
    environ = os.environ if environ is None else environ
    parser = argparse.ArgumentParser(prog="worker")
    data_dir = environ.get("DATA_DIR")
    parser.add_argument(
        "--data-dir",
        type=Path,
        metavar="DIR",
        default=Path(data_dir) if data_dir is not None else None,
        required=data_dir is None,
        help="Directory to keep in the data and state of this worker",
    )
    _option(parser, ["-p", "--prometheus-port", "--port"], "PROMETHEUS_PORT", environ, int, 8000,
            "Port to listen on")
    _option(parser, ["--p2p-port"], "LISTEN_PORT", environ, int, 12345, "P2P port to listen on")
    _option(parser, ["--public-ip"], "PUBLIC_IP", environ, str, None)
    _option(parser, ["--parallel-queries"], "PARALLEL_QUERIES", environ, int, 20)
    _option(parser, ["--concurrent-downloads"], "CONCURRENT_DOWNLOADS", environ, int, 3)
    _option(parser, ["--query-threads"], "QUERY_THREADS", environ, int, None)
    _option(parser, ["--assignment-url"], "ASSIGNMENT_URL", environ, str, "")
    _option(parser, ["--log-span-durations"], "LOG_SPAN_DURATIONS", environ, _parse_bool,
            False, argparse.SUPPRESS, nargs="?", const=True)
    _option(parser, ["--network"], "NETWORK", environ, Network, Network.MAINNET)
    _option(parser, ["--boot-nodes"], "BOOT_NODES", environ, _parse_list, [])
    _option(parser, ["--p2p-listen-addrs"], "P2P_LISTEN_ADDRS", environ, _parse_list, [])
    _option(parser, ["--p2p-public-addrs"], "P2P_PUBLIC_ADDRS", environ, _parse_list, [])
    namespace = parser.parse_args(argv)

    def env(name, parse, default):
        return parse(environ[name]) if name in environ else default

    return Args(
        data_dir=namespace.data_dir,
        prometheus_port=namespace.prometheus_port,
        p2p_port=namespace.p2p_port,
        public_ip=namespace.public_ip,
        parallel_queries=namespace.parallel_queries,
        concurrent_downloads=namespace.concurrent_downloads,
        query_threads=namespace.query_threads,
        assignment_url=namespace.assignment_url,
        heartbeat_interval=env("HEARTBEAT_INTERVAL_SEC", parse_seconds, timedelta(seconds=55)),
        network_polling_interval=env(
            "NETWORK_POLLING_INTERVAL_SEC", parse_seconds, timedelta(seconds=30)
        ),
        assignment_check_interval=env(
            "ASSIGNMENT_CHECK_INTERVAL_SEC", parse_seconds, timedelta(seconds=60)
        ),
        assignment_fetch_timeout=env(
            "ASSIGNMENT_FETCH_TIMEOUT_SEC", parse_seconds, timedelta(seconds=90)
        ),
        log_span_durations=namespace.log_span_durations,
        network=namespace.network,
        boot_nodes=list(namespace.boot_nodes),
        p2p_listen_addrs=list(namespace.p2p_listen_addrs),
        p2p_public_addrs=list(namespace.p2p_public_addrs),
        sentry_dsn=environ.get("SENTRY_DSN"),
        sentry_traces_sample_rate=env("SENTRY_TRACES_SAMPLE_RATE", float, 0.001),
    )