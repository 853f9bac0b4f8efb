#!/usr/bin/env python3
"""
Offline replay: run every Nth frame of a video through a detection session
(no audio, no window) and write the alert log plus an annotated video.

  python scripts/replay_video.py --input walk.mp4 --every 45
"""
from __future__ import annotations

import argparse
from pathlib import Path

import cv2
from rich.console import Console
from tqdm import tqdm

from safepath.app import make_run_dir
from safepath.inputs.camera_input import CameraInput
from safepath.runtime.orchestrator import build_detector
from safepath.runtime.session import DetectionSession
from safepath.safety.alert_debouncer import AlertDebouncer
from safepath.safety.safety_logger import SafetyLogger
from safepath.utils.config import get, load_yaml
from safepath.utils.logger import setup_logger
from safepath.visualization.overlay import render_view


class LoggedSpeech:
    """Speech channel that only logs; replays run faster than real time."""

    def __init__(self, logger):
        self.logger = logger

    def is_busy(self) -> bool:
        return False

    def speak(self, text: str, pan: float = 0.0) -> None:
        self.logger.info("[SPEECH] %s (pan=%+.0f)", text, pan)

    def cancel_all(self) -> None:
        pass

    def close(self) -> None:
        pass


def main():
    parser = argparse.ArgumentParser(description="Replay a video through SafePath offline")
    parser.add_argument("--config", default="configs/safepath.yaml")
    parser.add_argument("--input", required=True, help="Path to input video")
    parser.add_argument("--every", type=int, default=None, help="Sample every N frames (default: interval_s * fps)")
    parser.add_argument("--detector", choices=["yolo", "remote"], default=None)
    args = parser.parse_args()

    cfg = load_yaml(args.config)
    run_dir = make_run_dir(get(cfg, "runtime.output_dir", "results"))
    logger = setup_logger(log_dir=run_dir, level=get(cfg, "runtime.log_level", "INFO"))
    console = Console()
    console.print(f"[bold]SafePath replay[/bold] run dir: {run_dir}")

    vin = CameraInput(Path(args.input))
    vin.open()
    fps = vin.meta.fps if vin.meta and vin.meta.fps > 0 else 30.0
    every = args.every or max(1, int(round(float(get(cfg, "sampling.interval_s", 1.5)) * fps)))

    session = DetectionSession(
        detector=build_detector(cfg, args.detector),
        speech=LoggedSpeech(logger),
        debouncer=AlertDebouncer.from_config(cfg),
        safety_logger=SafetyLogger(run_dir),
        low_light_threshold=float(get(cfg, "brightness.low_light_threshold", 30)),
        brightness_stride=int(get(cfg, "brightness.stride", 1)),
        clock=lambda: 0.0,  # ticks are stamped with video time
    )

    writer = cv2.VideoWriter(
        str(run_dir / "output.mp4"), cv2.VideoWriter_fourcc(*"mp4v"), fps, (vin.meta.width, vin.meta.height)
    )
    total = vin.meta.frame_count if vin.meta.frame_count > 0 else None
    ticks = 0
    try:
        for frame_id, packet in tqdm(vin.frames(), total=total, desc="Replaying"):
            video_ms = frame_id / fps * 1000.0
            if frame_id % every == 0:
                session.tick(packet, now=video_ms)
                ticks += 1
            writer.write(render_view(packet.frame, session.snapshot(), frame_id / fps))
    finally:
        writer.release()
        vin.stop()
        session.close()

    console.print(f"Ticks: {ticks}  alerts log: {run_dir / 'alerts.jsonl'}  video: {run_dir / 'output.mp4'}")


if __name__ == "__main__":
    main()
