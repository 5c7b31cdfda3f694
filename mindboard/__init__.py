"""MindBoard - idea map engine for a personal task board."""

__version__ = "1.0.0"
__app_id__ = "io.github.mindboard.MindBoard"
