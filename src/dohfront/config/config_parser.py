"""Configuration parsing and normalization helpers for dohfront.

Brief:
  This module contains the configuration utilities used by the CLI entrypoint.
  It centralizes:
    - reading the optional YAML config file
    - applying command-line overrides
    - validating and normalizing the result into typed pydantic models

Inputs:
  - YAML config dicts and paths

Outputs:
  - ProxyConfig instances
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ConfigError
from ..servers.transports.doh import DEFAULT_DOH_HOST, DEFAULT_RESOLVE_PATH
from ..servers.udp_server import split_host_port

DEFAULT_FRONT = "youtube.com"
DEFAULT_LISTEN = "0.0.0.0:5353"


class UpstreamConfig(BaseModel):
    """Brief: Where and how fronted DoH requests are sent.

    Inputs:
      - front: TLS server name presented at the TLS layer.
      - host_header: HTTP Host header naming the DoH provider.
      - path: resource path of the JSON/DoH resolve endpoint.
      - port: TCP port on the front.
      - timeout_ms: per-request timeout.
      - ca_file: optional CA bundle for certificate validation.
    """

    front: str = DEFAULT_FRONT
    host_header: str = DEFAULT_DOH_HOST
    path: str = DEFAULT_RESOLVE_PATH
    port: int = Field(default=443, ge=1, le=65535)
    timeout_ms: int = Field(default=2000, gt=0)
    ca_file: Optional[str] = None

    @field_validator("front", "host_header")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        v = str(v).strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("path")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        v = str(v).strip() or DEFAULT_RESOLVE_PATH
        return v if v.startswith("/") else "/" + v


class ServerConfig(BaseModel):
    """Brief: Listener sizing knobs."""

    max_datagram: int = Field(default=2048, ge=512, le=65535)
    max_inflight: int = Field(default=256, ge=1)
    max_idle_buffers: Optional[int] = Field(default=None, ge=0)


class ProxyConfig(BaseModel):
    """Brief: Complete runtime configuration."""

    listen: str = DEFAULT_LISTEN
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("listen", mode="before")
    @classmethod
    def _listen_address(cls, v: Any) -> str:
        """Accept 'host:port' strings or {'host': ..., 'port': ...} mappings."""
        if isinstance(v, dict):
            host = str(v.get("host", "0.0.0.0"))
            try:
                port = int(v.get("port", 5353))
            except (TypeError, ValueError):
                raise ValueError("listen.port must be an integer") from None
            v = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
        elif not isinstance(v, (str, int)):
            raise ValueError("must be a 'host:port' string or a host/port mapping")
        v = str(v).strip()
        split_host_port(v)
        return v

    @field_validator("logging", mode="before")
    @classmethod
    def _logging_mapping(cls, v: Any) -> Dict[str, Any]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("must be a mapping")
        return dict(v)


def load_config_file(path: str) -> Dict[str, Any]:
    """Brief: Read a YAML config file into a mapping.

    Inputs:
      - path: filesystem path to the YAML document.

    Outputs:
      - dict: parsed mapping ({} for an empty file).

    Raises:
      - ConfigError when the file cannot be read or is not a YAML mapping.
    """

    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(cfg, dict):
        raise ConfigError(f"Config {path} must be a mapping at the top level")
    return cfg


def _section(cfg: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    """Return a copy of cfg[key] when it is a mapping ({} when absent), else None."""
    value = cfg.get(key)
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    return None


def apply_cli_overrides(
    cfg: Dict[str, Any],
    *,
    sni: Optional[str] = None,
    listen: Optional[str] = None,
    timeout_ms: Optional[int] = None,
    log_level: Optional[str] = None,
) -> Dict[str, Any]:
    """Brief: Overlay command-line values on a parsed config mapping.

    Inputs:
      - cfg: parsed config mapping (not mutated).
      - sni/listen/timeout_ms/log_level: CLI values; None leaves the config
        value in place.

    Outputs:
      - dict: new mapping with the overrides applied.
    """

    out = dict(cfg)
    upstream = _section(out, "upstream")
    logging_cfg = _section(out, "logging")
    if listen is not None:
        out["listen"] = listen
    # Sections of the wrong type are left untouched so build_config reports them.
    if upstream is not None:
        if sni is not None:
            upstream["front"] = sni
        if timeout_ms is not None:
            upstream["timeout_ms"] = timeout_ms
        out["upstream"] = upstream
    if logging_cfg is not None:
        if log_level is not None:
            logging_cfg["level"] = log_level
        out["logging"] = logging_cfg
    return out


def build_config(cfg: Optional[Dict[str, Any]]) -> ProxyConfig:
    """Brief: Validate a config mapping into a ProxyConfig.

    Inputs:
      - cfg: mapping as produced by load_config_file/apply_cli_overrides.

    Outputs:
      - ProxyConfig

    Raises:
      - ConfigError describing every invalid field. An empty upstream.front
        (the TLS server name) is rejected here.
    """

    try:
        return ProxyConfig.model_validate(cfg or {})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from exc
