from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .buffer_pool import BufferPool
from .config.config_parser import (
    DEFAULT_FRONT,
    DEFAULT_LISTEN,
    ProxyConfig,
    apply_cli_overrides,
    build_config,
    load_config_file,
)
from .config.logging_config import init_logging
from .errors import ConfigError, ListenerError
from .resolver import format_peer
from .servers.transports.doh import DoHClient
from .servers.udp_server import FrontedUDPServer, resolve_listen_address

DESCRIPTION = "Proxies DNS queries to a DoH server, possibly using domain fronting."


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dohfront", description=DESCRIPTION)
    parser.add_argument("--config", default=None, help="Path to optional YAML config")
    parser.add_argument(
        "--sni",
        default=None,
        metavar="SNI",
        help=f"TLS server name presented to the front (default: {DEFAULT_FRONT})",
    )
    parser.add_argument(
        "--listen",
        default=None,
        metavar="ADDRESS",
        help=f"UDP listen address (default: {DEFAULT_LISTEN})",
    )
    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Per-request HTTPS timeout in milliseconds (default: 2000)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level: debug, info, warn, error, crit (default: info)",
    )
    return parser


def create_server(config: ProxyConfig) -> FrontedUDPServer:
    """
    Build and bind the UDP listener described by config.

    Args:
        config: validated ProxyConfig.

    Returns:
        A bound FrontedUDPServer.

    Raises:
        ListenerError: the listen address does not resolve.
        OSError: binding failed (address in use, permission denied, ...).
    """
    family, sockaddr = resolve_listen_address(config.listen)
    pool = BufferPool(
        config.server.max_datagram, max_idle=config.server.max_idle_buffers
    )
    client = DoHClient(
        timeout_ms=config.upstream.timeout_ms, ca_file=config.upstream.ca_file
    )
    return FrontedUDPServer(
        sockaddr,
        config.upstream,
        client,
        pool=pool,
        max_inflight=config.server.max_inflight,
        address_family=family,
    )


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point.
    Parses arguments, loads configuration, binds the listener and serves
    until interrupted.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code: 0 after a keyboard interrupt, 1 for configuration,
        bind or fatal listener errors.

    Example use:
        CLI:
            PYTHONPATH=src python -m dohfront.main --sni youtube.com --listen 127.0.0.1:5353
    """
    args = build_parser().parse_args(argv)

    try:
        raw = load_config_file(args.config) if args.config else {}
        raw = apply_cli_overrides(
            raw,
            sni=args.sni,
            listen=args.listen,
            timeout_ms=args.timeout_ms,
            log_level=args.log_level,
        )
        config = build_config(raw)
    except ConfigError as exc:
        print(str(exc))
        return 1

    init_logging(config.logging)
    logger = logging.getLogger("dohfront.main")
    if args.config:
        logger.info("Loaded config from %s", args.config)

    server: Optional[FrontedUDPServer] = None
    try:
        server = create_server(config)
    except ListenerError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Unable to listen on %s: %s", config.listen, exc)
        return 1

    up = config.upstream
    logger.info(
        "Upstream: https://%s:%d%s (Host: %s), timeout: %dms",
        up.front,
        up.port,
        up.path,
        up.host_header,
        up.timeout_ms,
    )
    logger.info("Listening for DNS queries on %s", format_peer(server.server_address))

    exit_code = 0
    try:
        server.serve_forever()
    except ListenerError as exc:
        logger.error("%s", exc)
        exit_code = 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        server.server_close()
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
