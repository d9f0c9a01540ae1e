"""Screenshot Annotator.

A page capture and annotation utility with:
- Visible viewport, full scrollable page, and custom region capture
- Scroll-and-stitch compositing of viewport snapshots
- Vector annotation editor (pen, highlighter, shapes, arrows, text)
- Linear undo/redo and flattened raster export
"""

__version__ = "1.0.0"
__author__ = "Nick"
