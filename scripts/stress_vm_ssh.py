#!/usr/bin/env python3
"""Stress-test SSH-over-TLS connectivity to one Vers VM.

Connects N times in a row, runs a trivial command on each connection, and
reports per-attempt timing. Surfaces intermittent TLS, handshake or
session failures that a single ``vers connect`` would hide.

Usage:
    ./venv/bin/python scripts/stress_vm_ssh.py [vm-id|alias] [--iterations 20] [--command true]

Requires:
    VERS_API_KEY environment variable (or ~/.versrc) unless the VM's key is already cached.
"""

import argparse
import asyncio
import json
import logging
import time

from vers_cli.ssh import Client, ExitError, VersSSHError
from vers_cli.vm import get_connect_target

# ── Config ────────────────────────────────────────────────────────

ATTEMPT_TIMEOUT = 60
PAUSE_BETWEEN = 1

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logging.getLogger("asyncssh").setLevel(logging.WARNING)
log = logging.getLogger("stress_ssh")


class _Collector:
    """Binary sink that keeps what the remote command wrote."""

    def __init__(self):
        self.data = bytearray()

    def write(self, chunk):
        self.data.extend(chunk)


# ── Main loop ─────────────────────────────────────────────────────


async def run_one(client, command, iteration):
    """Connect, run *command*, disconnect. Returns result dict."""
    result = {
        "iteration": iteration,
        "ok": False,
        "stage": None,
        "exit_status": None,
        "error": None,
        "duration_s": 0,
    }

    out, err = _Collector(), _Collector()
    t0 = time.monotonic()
    try:
        await asyncio.wait_for(client.execute(command, stdout=out, stderr=err), ATTEMPT_TIMEOUT)
        result["ok"] = True
        result["exit_status"] = 0
    except ExitError as e:
        result["stage"] = "exit"
        result["exit_status"] = e.exit_status
        result["error"] = f"{e}: {bytes(err.data).decode(errors='replace')[:200]}"
    except VersSSHError as e:
        result["stage"] = type(e).__name__
        result["error"] = str(e)[:500]
    except asyncio.TimeoutError:
        result["stage"] = "timeout"
        result["error"] = f"no result after {ATTEMPT_TIMEOUT}s"
    finally:
        result["duration_s"] = round(time.monotonic() - t0, 2)

    status = "PASS" if result["ok"] else f"FAIL ({result['stage']})"
    log.info(f"  #{iteration}: {status} in {result['duration_s']}s")
    if result["error"]:
        log.info(f"    {result['error']}")
    return result


async def main():
    parser = argparse.ArgumentParser(description="Stress-test SSH-over-TLS to a Vers VM")
    parser.add_argument("target", nargs="?", default=None, help="VM id or alias (default: HEAD)")
    parser.add_argument("--iterations", "-n", type=int, default=20)
    parser.add_argument("--command", default="true", help="Command to run on each connection")
    args = parser.parse_args()

    target = await get_connect_target(args.target)
    client = Client(target.host, target.key_path)

    log.info(f"VM: {target.vm_id} ({client.hostname}:443)")
    log.info(f"Key: {target.key_path}")
    log.info(f"Iterations: {args.iterations}")
    log.info("")

    results = []
    for i in range(1, args.iterations + 1):
        results.append(await run_one(client, args.command, i))
        await asyncio.sleep(PAUSE_BETWEEN)

    # Summary
    log.info("")
    log.info("=" * 60)
    log.info("SUMMARY")
    log.info("=" * 60)
    total = len(results)
    passed = sum(1 for r in results if r["ok"])
    failed = total - passed
    durations = sorted(r["duration_s"] for r in results if r["ok"])
    log.info(f"Total: {total}  Passed: {passed}  Failed: {failed}  ({100 * passed / total:.0f}% success)")
    if durations:
        log.info(f"Duration: min={durations[0]}s median={durations[len(durations) // 2]}s max={durations[-1]}s")

    if failed:
        log.info("Failed iterations:")
        for r in results:
            if not r["ok"]:
                log.info(f"  #{r['iteration']}: stage={r['stage']} error={r['error']}")

    results_path = "vers_ssh_stress_results.json"
    with open(results_path, "w") as f:
        json.dump(results, f, indent=2)
    log.info(f"\nFull results saved to: {results_path}")


if __name__ == "__main__":
    asyncio.run(main())
