"""Chat Bridge dev launcher. Starts the service and, optionally, the dev tool server."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")
TOOL_SERVER_PORT = os.getenv("TOOL_SERVER_PORT", "8765")


def main():
    parser = argparse.ArgumentParser(description="Chat Bridge dev launcher")
    parser.add_argument("--config", type=Path, default=None,
                        help="Configuration file (default: $CHAT_BRIDGE_CONFIG or ./config.json)")
    parser.add_argument("--with-tool-server", action="store_true",
                        help="Also start the development MCP tool server")
    parser.add_argument("--reload", action="store_true",
                        help="Restart the service on code changes")
    args = parser.parse_args()

    # Build env for subprocesses so both pick up the same settings
    env = os.environ.copy()
    if args.config:
        env["CHAT_BRIDGE_CONFIG"] = str(args.config.resolve())
    env["TOOL_SERVER_PORT"] = TOOL_SERVER_PORT

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    if args.with_tool_server:
        print(f"Starting tool server on http://localhost:{TOOL_SERVER_PORT}/sse ...")
        procs.append(subprocess.Popen(
            ["uv", "run", "python", "-m", "backend.tool_server"],
            cwd=ROOT, env=env,
        ))

    print(f"Starting chat bridge on http://localhost:{PORT} ...")
    command = ["uv", "run", "uvicorn", "backend.app:app", "--host", HOST, "--port", PORT]
    if args.reload:
        command.append("--reload")
    procs.append(subprocess.Popen(command, cwd=ROOT, env=env))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
