"""AFM (Audio File Manager)

Core package for indexing a local audio library, enriching it with durations
in the background, filtering/sorting it into flat and tree views, and
sequencing playback across the filtered set.
"""

__all__ = [
    "__version__",
]

# Keep in sync with pyproject.toml
__version__ = "0.1.0"
