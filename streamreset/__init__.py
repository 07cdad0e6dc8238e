"""
StreamReset - reset tool for stream-processing applications.

Brings a streams application back to a clean starting point so it can
reprocess its input:
- Input topic offsets reset to earliest, latest, an absolute or shifted
  offset, a point in time, or a per-partition plan
- Intermediate topics skipped to their end
- Internal topics, internal containers and the application directory deleted
- Internal topic preparation with partition count checks for the runtime
"""

__version__ = "0.1.0"

from streamreset.tools.resetter import ResetOptions, StreamsResetter

__all__ = [
    "ResetOptions",
    "StreamsResetter",
]
