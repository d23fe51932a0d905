#!/usr/bin/env python3
"""Agenda Bot server.

Serves the agenda API and runs the time monitoring heartbeat.

Usage:
    agendabot                  # Start on the default port
    agendabot --port 9000      # Use custom port
    agendabot --dev            # Development mode with auto-reload
"""

import argparse
import os

import uvicorn

from . import config


def main():
    parser = argparse.ArgumentParser(
        description="Agenda Bot - meeting agenda and time monitoring server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    agendabot                       # Start server
    agendabot --port 3000           # Use custom port
    agendabot --db /data/agenda.db  # Use a specific database file
    agendabot --dev                 # Development mode with auto-reload
        """
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Interface to bind (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.DEFAULT_PORT,
        help=f"Port to run the server on (default: {config.DEFAULT_PORT})"
    )
    parser.add_argument(
        "--db",
        help="SQLite database path (default: AGENDABOT_DB_PATH or agendabot.db)"
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    # The API module reads its settings at import time
    if args.db:
        os.environ["AGENDABOT_DB_PATH"] = args.db
        config.DB_PATH = args.db

    print(f"API:    http://localhost:{args.port}/api/")
    print(f"Docs:   http://localhost:{args.port}/docs")
    print("Press Ctrl+C to stop the server")

    uvicorn.run("agendabot.api:app", host=args.host, port=args.port, reload=args.dev)


if __name__ == "__main__":
    main()
