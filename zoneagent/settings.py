from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="ZONEAGENT_", extra="ignore")

    api_base: str = "/api/v1"
    log_level: str = "INFO"

    # Bearer tokens accepted from the manager; more can be listed in token_file
    api_tokens: list[str] = []
    token_file: str | None = None
    # Empty means any client address is accepted
    allowed_ips: list[str] = []

    zone_data_dir: str = "/etc/bind/zones"
    zone_conf_dir: str = "/etc/bind/zones/conf"
    zones_conf_file: str = "/etc/bind/zones/zones.conf"
    named_conf_path: str = "/etc/bind/named.conf"

    named_checkzone_path: str = "/usr/bin/named-checkzone"
    named_checkconf_path: str = "/usr/bin/named-checkconf"
    rndc_path: str = "/usr/sbin/rndc"
    rndc_use_sudo: bool = False
    pgrep_path: str = "pgrep"
    dig_path: str = "dig"


def get_settings() -> AgentSettings:
    return AgentSettings()
