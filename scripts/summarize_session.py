#!/usr/bin/env python3
import json
import sys
from collections import Counter
from pathlib import Path


def pct(n, d):
    return (100.0 * n / d) if d else 0.0


def load_events(path):
    events = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line:
            events.append(json.loads(line))
    return events


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/summarize_session.py results/run_YYYYMMDD_HHMMSS")
        sys.exit(1)

    run_dir = Path(sys.argv[1])
    log_path = run_dir / "alerts.jsonl"
    if not log_path.exists():
        raise FileNotFoundError(f"Missing: {log_path}")

    events = load_events(log_path)
    n = len(events)
    if n == 0:
        print("No events found in alerts.jsonl")
        return

    states = Counter(e.get("state", "") for e in events)
    low_light = sum(1 for e in events if "LOW_LIGHT" in e.get("state", ""))
    critical = [e for e in events if e.get("state", "").startswith("CRITICAL")]
    labels = Counter()
    for e in events:
        for det in (e.get("details") or {}).get("detections", []):
            labels[det.get("label", "?")] += 1

    duration = events[-1].get("time_s", 0.0) - events[0].get("time_s", 0.0)

    print("\n================ SAFEPATH SESSION SUMMARY ================")
    print(f"Run dir: {run_dir}")
    print(f"State changes: {n}  over {duration:.1f}s  (last tick {events[-1].get('tick')})")

    print("\nState distribution:")
    for state, c in states.most_common():
        print(f"  {state:22s}: {c:4d} ({pct(c, n):.1f}%)")

    print(f"\nLow-light events: {low_light}")

    print("\nCritical alerts:")
    if critical:
        for e in critical[:20]:
            print(f"  t={e.get('time_s', 0.0):7.1f}s  {e.get('message', '')}")
        if len(critical) > 20:
            print(f"  ... {len(critical) - 20} more")
    else:
        print("  (none)")

    print("\nMost seen labels:")
    for label, c in labels.most_common(10):
        print(f"  {label:16s}: {c}")
    print("==========================================================\n")


if __name__ == "__main__":
    main()
