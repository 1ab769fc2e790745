from __future__ import annotations

import argparse
import signal
import sys
import threading
from typing import List, Optional

from tcping import __version__
from tcping.models import Option, Protocol
from tcping.parsing import build_target, parse_address, parse_duration
from tcping.pinger import DEFAULT_COUNTER, Pinger
from tcping.probes import http_factory, tcp_factory
from tcping.registry import load, register
from tcping.resolver import NameserverResolver

DEFAULT_TIMEOUT = "3s"
DEFAULT_INTERVAL = "1s"
DEFAULT_USER_AGENT = "tcping"
DEFAULT_HTTP_METHOD = "GET"

EXAMPLES = """examples:
  1. TCP ping
     > tcping google.com
  2. TCP ping with TLS on a custom port
     > tcping --tls 10.45.52.153 40083
  3. HTTP ping
     > tcping http://google.com
  4. HTTPS ping
     > tcping https://cn.bing.com/
  5. HTTP ping through a proxy
     > tcping --proxy http://192.168.3.8:32121 http://google.com
"""

DURATION_HELP = 'units: "ns", "us|µs", "ms", "s", "m", "h"; a bare number means milliseconds'


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcping",
        description="tcping is a ping over tcp connection",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("host", nargs="?", help="host, host:port or URL to ping")
    parser.add_argument("port", nargs="?", help="port, overrides the one in host")

    parser.add_argument("-c", "--counter", type=int, default=DEFAULT_COUNTER, help="Number of pings, <= 0 runs forever")
    parser.add_argument("-T", "--timeout", default=DEFAULT_TIMEOUT, help=f"Connect timeout ({DURATION_HELP})")
    parser.add_argument("-I", "--interval", default=DEFAULT_INTERVAL, help=f"Ping interval ({DURATION_HELP})")
    parser.add_argument("-D", "--dns-server", action="append", default=[], help="Use this DNS server (repeatable)")

    parser.add_argument("--http-method", default=DEFAULT_HTTP_METHOD, help="HTTP method in http mode")
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent in http mode")
    parser.add_argument("--meta", action="store_true", help="Show extra response metadata")
    parser.add_argument("--tls", action="store_true", help="Do a TLS handshake in tcp mode")
    parser.add_argument("--proxy", default="", help="Use this HTTP proxy")

    parser.add_argument("--verbose", action="store_true", help="Print diagnostic events to stderr")
    parser.add_argument("-v", "--version", action="store_true", help="Show version and exit")
    return parser


def _register_probes(args: argparse.Namespace) -> None:
    register(Protocol.TCP, tcp_factory(tls=args.tls))
    register(Protocol.HTTP, http_factory(args.http_method, with_meta=args.meta))
    register(Protocol.HTTPS, http_factory(args.http_method, with_meta=args.meta))


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def run_ping(args: argparse.Namespace) -> int:
    try:
        url = parse_address(args.host)
    except ValueError:
        return _fail(f"{args.host} is not a valid target.")

    try:
        target = build_target(url, port=args.port)
    except ValueError as exc:
        return _fail(f"invalid target: {exc}")

    try:
        timeout = parse_duration(args.timeout)
    except ValueError as exc:
        return _fail(f"failed to parse timeout: {exc}")
    if timeout <= 0:
        return _fail(f"invalid timeout {args.timeout}: must be greater than zero")
    try:
        interval = parse_duration(args.interval)
    except ValueError as exc:
        return _fail(f"failed to parse interval: {exc}")

    option = Option(
        timeout=timeout,
        resolver=NameserverResolver(args.dns_server) if args.dns_server else None,
        proxy=args.proxy or None,
        user_agent=args.user_agent,
    )

    _register_probes(args)
    factory = load(target.protocol)
    if factory is None:
        return _fail(f"no pinger registered for {target.protocol}")
    try:
        probe = factory(target, option)
    except ValueError as exc:
        return _fail(f"failed to load pinger: {exc}")

    pinger = Pinger(target, probe, interval=interval, counter=args.counter, verbose=args.verbose)

    def _handle_signal(signum, frame) -> None:
        pinger.stop()

    previous = {sig: signal.signal(sig, _handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}
    worker = threading.Thread(target=pinger.run, name="pinger", daemon=True)
    try:
        worker.start()
        # Short waits keep the main thread responsive to signals.
        while not pinger.wait(0.5):
            pass
        pinger.stop()
        worker.join()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    pinger.summarize()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"Version: v{__version__}")
        return 0
    if not args.host:
        parser.print_usage()
        return 0

    return run_ping(args)


if __name__ == "__main__":
    sys.exit(main())
