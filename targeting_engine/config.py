"""Runtime settings for the targeting engine."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_SERVER_PORT = "TARGETING_SERVER_PORT"
ENV_BASEPATH = "TARGETING_BASEPATH"
ENV_HEALTH_BASEPATH = "TARGETING_HEALTH_BASEPATH"
ENV_ELASTICSEARCH_HOSTS = "ELASTICSEARCH_HOSTS"
ENV_REDIS_HOST = "REDIS_HOST"


@dataclass(frozen=True)
class Settings:
    """Where the service listens and which backends it talks to."""

    server_port: str = ":8080"
    basepath: str = "/"
    health_check_basepath: str = "/health"
    elasticsearch_hosts: tuple[str, ...] = ()
    redis_host: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "elasticsearch_hosts", tuple(self.elasticsearch_hosts))
        host, sep, port = self.server_port.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"invalid server address: {self.server_port!r}")

    @property
    def host(self) -> str:
        """Interface to bind; empty means all interfaces."""
        return self.server_port.rpartition(":")[0]

    @property
    def port(self) -> int:
        """TCP port to listen on."""
        return int(self.server_port.rpartition(":")[2])


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    defaults = Settings()
    hosts = env.get(ENV_ELASTICSEARCH_HOSTS, "")
    return Settings(
        server_port=env.get(ENV_SERVER_PORT, defaults.server_port),
        basepath=env.get(ENV_BASEPATH, defaults.basepath),
        health_check_basepath=env.get(ENV_HEALTH_BASEPATH, defaults.health_check_basepath),
        elasticsearch_hosts=tuple(h.strip() for h in hosts.split(",") if h.strip()),
        redis_host=env.get(ENV_REDIS_HOST, defaults.redis_host),
    )