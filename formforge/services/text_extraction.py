"""Plain-text extraction for uploaded PDF and Markdown files."""

import asyncio
import os
import re

from langchain_community.document_loaders import PyPDFLoader, TextLoader

from formforge.errors import IngestionError, UnsupportedMediaError
from formforge.pipelines.uploads import MARKDOWN_TYPE, PDF_TYPE

_HTML_TAG_RE = re.compile(r"<[^>]*>")


class TextExtractor:
    """Turns a stored upload into the text that gets chunked and embedded."""

    async def extract(self, path: str, declared_type: str) -> str:
        if declared_type == PDF_TYPE:
            loader = PyPDFLoader(path)
        elif declared_type == MARKDOWN_TYPE or os.path.splitext(path)[1].lower() == ".md":
            loader = TextLoader(path, encoding="utf-8")
        else:
            raise UnsupportedMediaError("Unsupported file type", declared_type)

        # Loaders read and parse synchronously
        loop = asyncio.get_running_loop()
        try:
            documents = await loop.run_in_executor(None, loader.load)
        except Exception as e:
            raise IngestionError(f"Failed to extract text from {os.path.basename(path)}: {e}") from e

        text = "\n\n".join(doc.page_content for doc in documents)
        if declared_type == MARKDOWN_TYPE:
            # Inline HTML inside Markdown carries no retrievable content
            text = _HTML_TAG_RE.sub(" ", text)
        return text
