"""gamesight - developer CLI entry point."""

import json
import sys
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import click
import cv2
import numpy as np

from gamesight import __version__
from gamesight.data.config import ConfigError, ConfigManager
from gamesight.data.models import BuffKind, DetectionConfig, Rect
from gamesight.utils.errors import DetectionError
from gamesight.utils.logger import get_logger, setup_logger
from gamesight.vision.assets import AssetRegistry
from gamesight.vision.detector import CachedDetector, Detector, FrameDetector
from gamesight.vision.template_matcher import Match


def load_frame(path: str) -> np.ndarray:
    """
    Load a saved screenshot as a BGRA frame.

    Raises:
        click.BadParameter: If the file cannot be decoded
    """
    image = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise click.BadParameter(f"cannot read image: {path}")
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    return image


class FactReport:
    """Runs detectors one by one, collecting facts and failures."""

    def __init__(self, detector: Detector):
        self.detector = detector
        self.facts: Dict[str, Any] = {}
        self.regions: List[tuple] = []
        self.log = get_logger("cli")

    def run(self, name: str, fn: Callable[[], Any]) -> Optional[Any]:
        try:
            value = fn()
        except DetectionError as e:
            self.log.debug(f"{name}: {e}")
            self.facts[name] = None
            return None
        except FileNotFoundError as e:
            self.log.warning(f"{name}: asset missing ({e})")
            self.facts[name] = "unavailable"
            return None

        self.facts[name] = _to_json(value)
        return value

    def add_region(self, name: str, rect: Rect, color=(0, 255, 0)) -> None:
        self.regions.append((name, rect, color))


def _to_json(value: Any) -> Any:
    if isinstance(value, Rect):
        return {"x": value.x, "y": value.y, "width": value.width, "height": value.height}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, Enum):
        return value.name
    return value


def collect_facts(detector: Detector, border_threshold: Optional[int]) -> FactReport:
    """Run every frame-only capability plus the ones that build on the minimap."""
    report = FactReport(detector)

    minimap = report.run("minimap", lambda: detector.detect_minimap(border_threshold))
    if minimap is not None:
        report.add_region("minimap", minimap)

        player = report.run("player", lambda: detector.detect_player(minimap))
        if player is not None:
            report.add_region("player", player.translate(minimap.x, minimap.y), (0, 255, 255))

        rune = report.run("minimap_rune", lambda: detector.detect_minimap_rune(minimap))
        if rune is not None:
            report.add_region("rune", rune.translate(minimap.x, minimap.y), (255, 0, 255))

        report.run("portals", lambda: detector.detect_minimap_portals(minimap))

    report.run("dead", detector.detect_player_is_dead)
    report.run("cash_shop", detector.detect_player_in_cash_shop)
    report.run("esc_settings", detector.detect_esc_settings)
    report.run("elite_boss_bar", detector.detect_elite_boss_bar)
    report.run("erda_shower", detector.detect_erda_shower)

    health_bar = report.run("health_bar", detector.detect_player_health_bar)
    if health_bar is not None:
        report.add_region("health", health_bar, (0, 0, 255))

    report.run("buffs", lambda: [
        kind.value for kind in BuffKind if detector.detect_player_buff(kind)
    ])
    return report


def annotate(frame: np.ndarray, report: FactReport, output: str) -> None:
    """Write a copy of `frame` with every located region outlined."""
    image = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
    matcher = report.detector.matcher
    for name, rect, color in report.regions:
        matcher.draw_match(
            image, Match(rect.x, rect.y, rect.width, rect.height, 1.0), color, label=False
        )
        cv2.putText(image, name, (rect.x, max(rect.y - 5, 0)), cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)
    cv2.imwrite(output, image)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    help="Set logging level",
)
@click.option(
    "--log-dir",
    type=click.Path(),
    default="logs",
    help="Directory for log files",
)
@click.option(
    "--config-dir",
    type=click.Path(),
    default=None,
    help="Directory containing detection.yaml",
)
@click.pass_context
def cli(ctx, log_level: str, log_dir: str, config_dir: Optional[str]):
    """gamesight - visual detection for game screen captures.

    Runs the detection pipeline on saved screenshots for debugging
    templates, thresholds and networks.
    """
    ctx.ensure_object(dict)

    setup_logger(level=log_level, log_dir=log_dir)

    ctx.obj["logger"] = get_logger("cli")
    ctx.obj["config_manager"] = ConfigManager(config_dir)


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--border-threshold",
    type=click.IntRange(0, 255),
    default=None,
    help="Minimum channel value of minimap border pixels",
)
@click.option(
    "--annotate",
    "annotate_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write an annotated copy of the image here",
)
@click.option("--format", "fmt", type=click.Choice(["json", "text"]), default="text")
@click.pass_context
def detect(ctx, image: str, border_threshold: Optional[int], annotate_path: Optional[str], fmt: str):
    """Run the detectors on a saved screenshot."""
    log = ctx.obj["logger"]

    try:
        config: DetectionConfig = ctx.obj["config_manager"].load()
    except ConfigError as e:
        log.error(f"Invalid configuration: {e}")
        sys.exit(1)

    frame = load_frame(image)
    log.info(f"Loaded {image} ({frame.shape[1]}x{frame.shape[0]})")

    assets = AssetRegistry.from_config(config)
    detector = CachedDetector(FrameDetector(frame, assets=assets, config=config))
    report = collect_facts(detector, border_threshold)

    if fmt == "json":
        click.echo(json.dumps(report.facts, indent=2))
    else:
        click.echo("=" * 60)
        click.echo("FACTS")
        click.echo("=" * 60)
        for name, value in report.facts.items():
            click.echo(f"{name:<16} {value}")
        click.echo("=" * 60)

    if annotate_path:
        annotate(frame, report, annotate_path)
        log.info(f"Annotated image written to {annotate_path}")


@cli.command()
def version():
    """Show version information."""
    click.echo(f"gamesight v{__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
