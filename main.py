"""Sit-out Chat — dev launcher. Starts the API server, or runs the conversation in the terminal."""

import argparse
import asyncio
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
BACKEND_PORT = os.getenv("BACKEND_PORT", "13013")


def print_bubble(message) -> None:
    tag = " (canned)" if message.source == "fallback" else ""
    print(f"\n  {message.speaker_name}{tag}:\n    {message.text}")


async def run_console() -> None:
    """Drive the conversation until it pauses at the turn limit (or Ctrl+C)."""
    from sitout.config import load_settings
    from sitout.runtime import Runtime

    runtime = Runtime(load_settings(), auto_start=True)
    runtime.scheduler.listeners.append(print_bubble)
    names = ", ".join(p.name for p in runtime.personas)
    print(f"On the sit-out tonight: {names}")

    runtime.driver.start()
    try:
        while not runtime.scheduler.state.is_paused:
            await asyncio.sleep(0.5)
    finally:
        await runtime.driver.stop()
        await runtime.speech.drain()
    print("\nThe conversation pauses here.")


def main():
    parser = argparse.ArgumentParser(description="Sit-out Chat dev launcher")
    parser.add_argument("--console", action="store_true",
                        help="Run the conversation in this terminal instead of serving the API")
    parser.add_argument("--no-reload", action="store_true",
                        help="Start uvicorn without --reload")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"),
                        help="Logging level (default: INFO)")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.console:
        try:
            asyncio.run(run_console())
        except KeyboardInterrupt:
            print("\nShutting down...")
        return

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

    cmd = ["uvicorn", "backend.app:app", "--host", HOST, "--port", BACKEND_PORT,
           "--log-level", args.log_level.lower()]
    if not args.no_reload:
        cmd.append("--reload")

    print(f"Starting backend on http://localhost:{BACKEND_PORT} ...")
    procs.append(subprocess.Popen(cmd, cwd=ROOT, env=os.environ.copy()))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
