"""
NoteForge Backend - Editor Surface Package
===========================================

The in-process rich-text editor: an HTML document tree with toolbar toggles,
image drop/paste, undo history and markdown streaming.
"""

from noteforge.editor.surface import (
    COMMANDS,
    EMPTY_DOCUMENT,
    EditorSurface,
    StreamAccumulator,
    Uploader,
)

__all__ = [
    "COMMANDS",
    "EMPTY_DOCUMENT",
    "EditorSurface",
    "StreamAccumulator",
    "Uploader",
]
