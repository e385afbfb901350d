"""Text splitting for embedding."""

from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter


class TextChunker:
    """Splits extracted text into ordered, overlapping fragments."""

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200):
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
        )

    def split(self, text: str) -> List[str]:
        if not text.strip():
            return []
        return self._splitter.split_text(text)
