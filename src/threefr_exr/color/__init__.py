from .pipeline import ColorMode, ConversionOptions, convert_frame, transform_samples
from .srgb import linear_to_srgb, reinhard, srgb_to_linear

__all__ = [
    "ColorMode",
    "ConversionOptions",
    "convert_frame",
    "transform_samples",
    "linear_to_srgb",
    "reinhard",
    "srgb_to_linear",
]
