"""Tokenization and chunking."""

from bookrag.text.base import BaseTextSplitter
from bookrag.text.chunker import MarkdownChunker
from bookrag.text.line_splitter import LineSplitter
from bookrag.text.tokenizer import TextTokenizer, Tokenizer

__all__ = [
    "BaseTextSplitter",
    "LineSplitter",
    "MarkdownChunker",
    "TextTokenizer",
    "Tokenizer",
]
