"""Chat model and embedding construction, and streamed completion collection."""

import logging
from typing import Any, Dict

from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser
from langchain_core.prompts import ChatPromptTemplate

from formforge.config import Settings
from formforge.errors import ProviderError

logger = logging.getLogger(__name__)


def build_chat_model(settings: Settings) -> BaseChatModel:
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=settings.chat_model,
        temperature=settings.chat_temperature,
        max_output_tokens=settings.chat_max_output_tokens,
        google_api_key=settings.google_api_key,
    )


def build_embeddings(settings: Settings) -> Embeddings:
    from langchain_google_genai import GoogleGenerativeAIEmbeddings

    return GoogleGenerativeAIEmbeddings(
        model=settings.embedding_model,
        google_api_key=settings.google_api_key,
    )


async def collect_stream(
    prompt: ChatPromptTemplate,
    model: BaseChatModel,
    variables: Dict[str, Any],
) -> str:
    """Consume the full model stream and return the concatenated text.

    Nothing is parsed mid-stream; partial JSON cannot be validated anyway.
    There is no timeout: a stalled provider stalls only this call.
    """
    chain = prompt | model | StrOutputParser()
    parts = []
    try:
        async for chunk in chain.astream(variables):
            parts.append(chunk)
    except Exception as e:
        raise ProviderError(f"Error during LLM response streaming: {e}", "chat_model") from e

    text = "".join(parts)
    logger.info("LLM stream finished", extra={"chunks": len(parts), "response_chars": len(text)})
    return text
