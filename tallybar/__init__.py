"""Terminal progress reporting: draw targets, multi-line layout, text width and human-readable formatting."""

__version__ = "0.1.0"

__all__ = ["draw_target", "format", "multi", "multi_state", "textwidth"]