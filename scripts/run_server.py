#!/usr/bin/env python3
"""
Start the CipherDeck API with uvicorn.
If the requested port is busy, moves to the next one up to PORT_RETRY_LIMIT times.
"""

import argparse
import errno
import socket
import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from cipherdeck.core import config


def port_available(host: str, port: int) -> bool:
    """Check whether host:port can be bound right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return False
            raise
    return True


def pick_port(host: str, port: int, retries: int) -> int:
    """First free port in [port, port + retries]."""
    for candidate in range(port, port + retries + 1):
        if port_available(host, candidate):
            if candidate != port:
                print(f"Port {port} busy, moved CipherDeck API to port {candidate}")
            return candidate
    raise RuntimeError(f"No free port in {port}..{port + retries}")


def main():
    parser = argparse.ArgumentParser(description="Run the CipherDeck API server")
    parser.add_argument("--host", default=config.HOST,
                        help=f"Bind address (default: {config.HOST})")
    parser.add_argument("--port", type=int, default=config.PORT,
                        help=f"Port to listen on (default: {config.PORT})")
    parser.add_argument("--retries", type=int, default=config.PORT_RETRY_LIMIT,
                        help="How many following ports to try when the port is busy")
    parser.add_argument("--reload", action="store_true",
                        help="Enable auto-reload (development only)")
    args = parser.parse_args()

    issues = config.validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    try:
        port = pick_port(args.host, args.port, args.retries)
    except RuntimeError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    print(f"CipherDeck API running on port {port}")
    uvicorn.run(
        "cipherdeck.api.main:app",
        host=args.host,
        port=port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
