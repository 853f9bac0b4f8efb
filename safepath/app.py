from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich.console import Console

from safepath.inputs.camera_input import CameraUnavailableError
from safepath.runtime.orchestrator import Orchestrator
from safepath.utils.config import get, load_yaml
from safepath.utils.logger import setup_logger


def make_run_dir(base_dir: str | Path) -> Path:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(base_dir) / f"run_{ts}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SafePath - obstacle alerts for walking assistance")
    parser.add_argument("--config", default="configs/safepath.yaml", help="Path to YAML config")
    parser.add_argument("--source", default=None, help="Camera index, stream URL or video file (default: camera.source)")
    parser.add_argument("--detector", choices=["yolo", "remote"], default=None, help="Override detector.kind")
    parser.add_argument("--mode", choices=["camera", "indoor"], default="camera", help="indoor adds QR wayfinding and voice commands")
    parser.add_argument("--no-display", action="store_true", help="Run without the OpenCV window")
    parser.add_argument("--max-ticks", type=int, default=None, help="Stop after this many completed sampling ticks")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    cfg: Dict[str, Any] = load_yaml(args.config)
    if args.max_ticks is not None:
        cfg.setdefault("runtime", {})["max_ticks"] = args.max_ticks

    run_dir = make_run_dir(get(cfg, "runtime.output_dir", "results"))
    logger = setup_logger(log_dir=run_dir, level=get(cfg, "runtime.log_level", "INFO"))

    console = Console()
    console.print(f"[bold]SafePath[/bold] run dir: {run_dir}")

    display = bool(get(cfg, "display.enabled", True)) and not args.no_display
    orchestrator = Orchestrator.from_config(
        cfg,
        source=args.source,
        detector_kind=args.detector,
        indoor=args.mode == "indoor",
        run_dir=run_dir,
        logger=logger,
    )
    try:
        orchestrator.run(display=display)
    except CameraUnavailableError as exc:
        logger.error("Camera unavailable: %s", exc)
        console.print(f"[bold red]CAMERA ERROR[/bold red] {exc}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")

    console.print(
        f"Ticks: {orchestrator.sampler.ticks}  skipped: {orchestrator.sampler.skipped}  "
        f"alerts log: {run_dir / 'alerts.jsonl'}"
    )
    logger.info("Done.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
