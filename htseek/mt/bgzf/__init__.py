"""
Thread pool backed BGZF reader and writer, drop-in replacements for htseek.bgzf.Reader and htseek.bgzf.Writer.
"""

from .reader import Reader
from .writer import Writer
