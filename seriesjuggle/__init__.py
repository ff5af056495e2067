"""Time series containers and transforms, custom functions, CSV and ULog loaders, and a synthetic streamer."""

__version__ = "0.1.0"