"""Run a repeatable lookup workload against the proxy and write a JSON result.

Each repetition fires `--concurrency` simultaneous lookups for every control
number, which exercises request coalescing on a cold cache and cache hits on
later repetitions. Output JSON shape is stable to support comparisons.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx


@dataclass(frozen=True, slots=True)
class WorkloadStep:
    name: str
    method: str
    path: str


def _default_steps(control_numbers: list[str]) -> list[WorkloadStep]:
    steps = [WorkloadStep(name="health", method="GET", path="/health")]
    for number in control_numbers:
        steps.append(
            WorkloadStep(name=f"lookup:{number}", method="GET", path=f"/api/certificate/{number}")
        )
    return steps


async def _run_once(
    client: httpx.AsyncClient,
    step: WorkloadStep,
    *,
    headers: dict[str, str],
    timeout_seconds: float,
) -> dict[str, Any]:
    start = time.perf_counter()
    status_code: int | None = None
    error: str | None = None

    try:
        resp = await client.request(
            step.method,
            step.path,
            headers=headers,
            timeout=timeout_seconds,
        )
        status_code = resp.status_code
        # Read body to include transfer time (but do not store the full content).
        _ = resp.text
    except httpx.HTTPError as exc:
        error = f"{type(exc).__name__}: {exc}"

    duration_ms = (time.perf_counter() - start) * 1000.0

    return {
        "name": step.name,
        "method": step.method,
        "path": step.path,
        "status": status_code,
        "duration_ms": round(duration_ms, 3),
        "error": error,
    }


def _percentile(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    values_sorted = sorted(values)
    k = int(round((p / 100.0) * (len(values_sorted) - 1)))
    return float(values_sorted[max(0, min(k, len(values_sorted) - 1))])


def _summarize(results: list[dict[str, Any]]) -> dict[str, Any]:
    by_step: dict[str, list[float]] = {}
    statuses: dict[str, int] = {}
    errors = 0

    for r in results:
        if r.get("error") is not None or r.get("status") is None:
            errors += 1
        else:
            status_key = str(r["status"])
            statuses[status_key] = statuses.get(status_key, 0) + 1
        by_step.setdefault(r["name"], []).append(float(r["duration_ms"]))

    summary_steps: dict[str, Any] = {}
    for name, durations in by_step.items():
        summary_steps[name] = {
            "count": len(durations),
            "p50_ms": round(_percentile(durations, 50), 3),
            "p95_ms": round(_percentile(durations, 95), 3),
            "max_ms": round(max(durations) if durations else 0.0, 3),
        }

    return {
        "total": len(results),
        "errors": errors,
        "statuses": statuses,
        "steps": summary_steps,
    }


async def run_workload(
    *,
    base_url: str,
    control_numbers: list[str],
    repetitions: int,
    concurrency: int,
    timeout_seconds: float,
    verify_tls: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    steps = _default_steps(control_numbers)
    results: list[dict[str, Any]] = []

    async with httpx.AsyncClient(
        base_url=base_url, verify=verify_tls, transport=transport
    ) as client:
        for i in range(repetitions):
            for step in steps:
                burst = [
                    _run_once(
                        client,
                        step,
                        headers={"x-request-id": f"workload-{i}-{n}"},
                        timeout_seconds=timeout_seconds,
                    )
                    for n in range(concurrency)
                ]
                results.extend(await asyncio.gather(*burst))

    return {
        "version": 1,
        "base_url": base_url,
        "control_numbers": control_numbers,
        "repetitions": repetitions,
        "concurrency": concurrency,
        "timeout_seconds": timeout_seconds,
        "results": results,
        "summary": _summarize(results),
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a repeatable certificate lookup workload")
    parser.add_argument("--base-url", default="https://localhost:3000", help="Proxy base URL")
    parser.add_argument(
        "control_numbers",
        nargs="+",
        help="Control numbers to look up",
    )
    parser.add_argument("--repetitions", type=int, default=3, help="Number of repetitions")
    parser.add_argument(
        "--concurrency", type=int, default=10, help="Simultaneous requests per lookup"
    )
    parser.add_argument("--timeout-seconds", type=float, default=10.0, help="Per-request timeout")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS verification (self-signed development certificates)",
    )
    parser.add_argument(
        "--out",
        default="workload.json",
        help="Output JSON file path",
    )

    args = parser.parse_args()

    out_path = Path(args.out)
    data = asyncio.run(
        run_workload(
            base_url=args.base_url,
            control_numbers=args.control_numbers,
            repetitions=args.repetitions,
            concurrency=args.concurrency,
            timeout_seconds=args.timeout_seconds,
            verify_tls=not args.insecure,
        )
    )
    out_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    print(json.dumps(data["summary"], indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
