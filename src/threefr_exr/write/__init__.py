from .exr_writer import COMPRESSIONS, PIXEL_TYPES, WriteError, write_exr_rgba

__all__ = [
    "COMPRESSIONS",
    "PIXEL_TYPES",
    "WriteError",
    "write_exr_rgba",
]
