from __future__ import annotations

import argparse
import dataclasses
import logging
import math
from pathlib import Path
import sys

from threefr_exr.batch import DirectoryError, plan_batch, run_batch
from threefr_exr.color import ColorMode
from threefr_exr.config import AppConfig, ConfigError, load_config, validate_config
from threefr_exr.decode import LibRawDecoder
from threefr_exr.utils.logging_utils import configure_logging
from threefr_exr.worker import ConversionJob, FileResult
from threefr_exr.write import COMPRESSIONS, PIXEL_TYPES


logger = logging.getLogger(__name__)

_RULE = "-" * 40


class ArgumentError(ValueError):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise ArgumentError(message)


def _positive_float(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid exposure value: {value!r}") from None
    if not math.isfinite(parsed) or parsed <= 0.0:
        raise argparse.ArgumentTypeError(f"exposure must be a positive number, got {value!r}")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="threefr-exr",
        description="Batch convert 3FR raw files in a directory to full-sensor OpenEXR images.",
        epilog=(
            "Examples: threefr-exr /path/to/3fr/files | "
            "threefr-exr /path/to/3fr/files --exposure 1.5 | "
            "threefr-exr /path/to/3fr/files --linear"
        ),
    )
    parser.add_argument("input_dir", help="Directory containing .3fr files")
    parser.add_argument(
        "--linear",
        action="store_true",
        help="Keep the decoder's sRGB-encoded output (no conversion to linear)",
    )
    parser.add_argument(
        "--exposure",
        type=_positive_float,
        default=None,
        help="Exposure multiplier; values other than 1.0 apply Reinhard tone mapping (default: 1.0)",
    )
    parser.add_argument("--config", default=None, help="Optional YAML config")
    parser.add_argument("--workers", type=int, default=None, help="Convert files in N parallel processes")
    parser.add_argument("--pixel-type", choices=sorted(PIXEL_TYPES), default=None, help="EXR channel type")
    parser.add_argument("--compression", choices=sorted(COMPRESSIONS), default=None, help="EXR compression")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log decoder details to stderr")
    return parser


def _resolve_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(args.config) if args.config else AppConfig()

    if args.linear:
        config.conversion = dataclasses.replace(config.conversion, color_mode=ColorMode.PASSTHROUGH)
    if args.exposure is not None:
        config.conversion = dataclasses.replace(config.conversion, exposure=args.exposure)
    if args.pixel_type is not None:
        config.output = dataclasses.replace(config.output, pixel_type=args.pixel_type)
    if args.compression is not None:
        config.output = dataclasses.replace(config.output, compression=args.compression)
    if args.workers is not None:
        config.workers = int(args.workers)

    validate_config(config)
    return config


def _print_start(job: ConversionJob) -> None:
    print(f"Converting: {job.source.name} -> {job.output.name}", flush=True)


def _print_result(result: FileResult) -> None:
    g = result.geometry
    if g is not None:
        print(f"  Raw size: {g.raw_width}x{g.raw_height}")
        print(f"  Visible size: {g.visible_width}x{g.visible_height}")
        print(f"  Margins: top={g.top_margin} left={g.left_margin}")
    if result.ok:
        print(f"  Final size: {result.width}x{result.height}")
        print(f"✓ Successfully converted {result.source.name}")
    else:
        print(f"✗ Failed to convert {result.source.name}: {result.error}")
    print(_RULE, flush=True)


def _run(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    configure_logging(config.log_level, config.log_file, verbose=args.verbose)

    input_dir = Path(args.input_dir).expanduser().resolve()
    plan = plan_batch(input_dir, config)

    if not plan.jobs:
        print(f"No 3FR files found in directory: {input_dir}")
        return 0

    print(f"Found {len(plan.jobs)} 3FR file(s) to process:")
    for job in plan.jobs:
        print(f"  {job.source.name}")
    print()
    options = config.conversion.to_options()
    print(f"Processing mode: {options.describe()}")
    print(f"Exposure multiplier: {options.exposure:g}")
    print()

    result = run_batch(
        plan,
        decoder_factory=LibRawDecoder,
        workers=config.workers,
        on_result=_print_result,
        on_start=_print_start,
    )

    print()
    print("Batch conversion completed!")
    print(f"Successfully converted: {result.succeeded} files")
    print(f"Failed conversions: {result.failed} files")
    print(f"Output directory: {result.output_dir}")
    return 1 if result.failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()

    try:
        args = parser.parse_args(argv)
        return _run(args)
    except ArgumentError as exc:
        parser.print_usage(sys.stderr)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except (ConfigError, DirectoryError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        logger.exception("fatal error")
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
