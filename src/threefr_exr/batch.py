from __future__ import annotations

from dataclasses import dataclass, field
import logging
import multiprocessing as mp
from pathlib import Path
from typing import Callable, Iterable

from threefr_exr.config import AppConfig
from threefr_exr.decode import LibRawDecoder, RawDecoder
from threefr_exr.worker import ConversionJob, FileResult, convert_file


logger = logging.getLogger(__name__)

RAW_EXTENSION = ".3fr"
OUTPUT_EXTENSION = ".exr"

DecoderFactory = Callable[[], RawDecoder]
ResultCallback = Callable[[FileResult], None]
StartCallback = Callable[[ConversionJob], None]


class DirectoryError(RuntimeError):
    pass


@dataclass
class BatchPlan:
    input_dir: Path
    output_dir: Path
    jobs: list[ConversionJob]


@dataclass
class BatchResult:
    output_dir: Path
    results: list[FileResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


def is_raw_input(path: Path) -> bool:
    return path.name.lower().endswith(RAW_EXTENSION)


def discover_inputs(input_dir: Path) -> list[Path]:
    """Regular files in ``input_dir`` ending in .3fr (any case), sorted by name."""

    return sorted(
        (p for p in input_dir.iterdir() if p.is_file() and is_raw_input(p)),
        key=lambda p: p.name,
    )


def _strip_extension(name: str) -> str:
    stem, dot, _ = name.rpartition(".")
    return stem if dot else name


def output_path_for(input_path: Path, output_dir: Path) -> Path:
    return output_dir / f"{_strip_extension(input_path.name)}{OUTPUT_EXTENSION}"


def plan_batch(input_dir: Path, config: AppConfig) -> BatchPlan:
    """Validate the input directory and build one job per raw file.

    Nothing is created on disk here.
    """

    if not input_dir.is_dir():
        raise DirectoryError(f"input directory '{input_dir}' does not exist or is not a directory")

    output_dir = input_dir / config.output.subdir
    options = config.conversion.to_options()
    decode_params = config.decode.to_params()

    try:
        inputs = discover_inputs(input_dir)
    except OSError as exc:
        raise DirectoryError(f"could not read directory '{input_dir}': {exc}") from exc

    jobs = [
        ConversionJob(
            source=path,
            output=output_path_for(path, output_dir),
            options=options,
            decode_params=decode_params,
            pixel_type=config.output.pixel_type,
            compression=config.output.compression,
        )
        for path in inputs
    ]
    return BatchPlan(input_dir=input_dir, output_dir=output_dir, jobs=jobs)


def ensure_output_dir(output_dir: Path) -> bool:
    """Create ``output_dir`` if needed. Returns True when it was created."""

    if output_dir.is_dir():
        return False
    try:
        output_dir.mkdir(parents=False, exist_ok=True)
    except OSError as exc:
        raise DirectoryError(f"could not create output directory '{output_dir}': {exc}") from exc
    return True


def _run_sequential(
    jobs: Iterable[ConversionJob],
    decoder_factory: DecoderFactory,
    on_start: StartCallback | None = None,
) -> Iterable[FileResult]:
    try:
        decoder = decoder_factory()
    except Exception as exc:
        logger.exception("decoder initialization failed")
        for job in jobs:
            if on_start is not None:
                on_start(job)
            yield FileResult(source=job.source, output=job.output, ok=False, error=f"decoder initialization failed: {exc}")
        return

    for job in jobs:
        if on_start is not None:
            on_start(job)
        yield convert_file(job, decoder)


# per-process decoder for pool workers
_pool_decoder: RawDecoder | None = None
_pool_decoder_error: str | None = None


def _init_pool_worker(decoder_factory: DecoderFactory) -> None:
    global _pool_decoder, _pool_decoder_error
    try:
        _pool_decoder = decoder_factory()
    except Exception as exc:
        _pool_decoder_error = f"decoder initialization failed: {exc}"


def _pool_convert(job: ConversionJob) -> FileResult:
    if _pool_decoder is None:
        return FileResult(source=job.source, output=job.output, ok=False, error=_pool_decoder_error)
    return convert_file(job, _pool_decoder)


def _run_pool(
    jobs: list[ConversionJob],
    decoder_factory: DecoderFactory,
    workers: int,
    on_start: StartCallback | None = None,
) -> Iterable[FileResult]:
    ctx = mp.get_context("spawn")
    with ctx.Pool(processes=workers, initializer=_init_pool_worker, initargs=(decoder_factory,)) as pool:
        # one file per task keeps peak memory at one frame per worker
        for job, outcome in zip(jobs, pool.imap(_pool_convert, jobs, chunksize=1)):
            # imap keeps submission order, so start and result lines stay paired
            if on_start is not None:
                on_start(job)
            yield outcome


def run_batch(
    plan: BatchPlan,
    decoder_factory: DecoderFactory = LibRawDecoder,
    workers: int = 1,
    on_result: ResultCallback | None = None,
    on_start: StartCallback | None = None,
) -> BatchResult:
    result = BatchResult(output_dir=plan.output_dir)
    if not plan.jobs:
        return result

    if ensure_output_dir(plan.output_dir):
        logger.info("created output directory %s", plan.output_dir)

    if workers > 1 and len(plan.jobs) > 1:
        outcomes = _run_pool(plan.jobs, decoder_factory, min(workers, len(plan.jobs)), on_start)
    else:
        outcomes = _run_sequential(plan.jobs, decoder_factory, on_start)

    for outcome in outcomes:
        result.results.append(outcome)
        if on_result is not None:
            on_result(outcome)

    logger.info(
        "batch finished: %s succeeded, %s failed, output=%s",
        result.succeeded,
        result.failed,
        result.output_dir,
    )
    return result
