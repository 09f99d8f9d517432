from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path

from threefr_exr.color import ConversionOptions, convert_frame
from threefr_exr.decode import DecodeError, DecodeParams, RawDecoder, SensorGeometry, full_sensor_region
from threefr_exr.write import WriteError, write_exr_rgba


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionJob:
    source: Path
    output: Path
    options: ConversionOptions
    decode_params: DecodeParams = field(default_factory=DecodeParams)
    pixel_type: str = "half"
    compression: str = "zip"


@dataclass(frozen=True)
class FileResult:
    source: Path
    output: Path
    ok: bool
    error: str | None = None
    width: int | None = None
    height: int | None = None
    geometry: SensorGeometry | None = None


def _failed(job: ConversionJob, error: str, geometry: SensorGeometry | None = None) -> FileResult:
    return FileResult(source=job.source, output=job.output, ok=False, error=error, geometry=geometry)


def convert_file(job: ConversionJob, decoder: RawDecoder) -> FileResult:
    """Decode, convert and write one raw file.

    Every per-file failure is logged and returned as a failed result so the
    batch can move on to the next file.
    """

    name = job.source.name
    logger.info("processing %s -> %s", job.source, job.output)

    geometry = None
    try:
        with decoder.open(job.source) as session:
            geometry = session.geometry
            # region must be fixed before the decoder's processing stage runs
            region = full_sensor_region(session.geometry)
            frame = session.process(region, job.decode_params)
            rgba = convert_frame(frame, job.options)
            del frame

        write_exr_rgba(job.output, rgba, pixel_type=job.pixel_type, compression=job.compression)
    except DecodeError as exc:
        logger.error("decode failed for %s: %s", name, exc)
        return _failed(job, str(exc), geometry)
    except WriteError as exc:
        logger.error("write failed for %s: %s", name, exc)
        return _failed(job, str(exc), geometry)
    except Exception as exc:
        logger.exception("conversion failed for %s", name)
        return _failed(job, f"conversion failed: {exc}", geometry)

    height, width = rgba.shape[:2]
    logger.info("wrote %s (%sx%s)", job.output, width, height)
    return FileResult(
        source=job.source,
        output=job.output,
        ok=True,
        width=int(width),
        height=int(height),
        geometry=geometry,
    )
