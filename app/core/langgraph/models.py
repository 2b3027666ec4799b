"""Chat model construction for model steps attached to an AI agent."""

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from app.core.config import settings
from app.core.logging import logger
from app.core.workflow.configs import ModelConfig
from app.core.workflow.errors import StepConfigurationError
from app.core.workflow.schema import StepType


def create_chat_model(step_type: str, config: ModelConfig) -> BaseChatModel:
    """Build the chat model described by a model step.

    Args:
        step_type: ``geminiModel`` or ``openaiModel``.
        config: The model step's configuration; ``api_key`` must be set.

    Returns:
        BaseChatModel: A tool-calling capable chat model.

    Raises:
        StepConfigurationError: If the step type is not a model type.
    """
    max_tokens = config.max_tokens or settings.AGENT_DEFAULT_MAX_TOKENS

    if step_type == StepType.GEMINI_MODEL.value:
        model_name = config.model or settings.AGENT_DEFAULT_GEMINI_MODEL
        llm = ChatGoogleGenerativeAI(
            model=model_name,
            temperature=config.temperature,
            max_output_tokens=max_tokens,
            google_api_key=config.api_key,
        )
    elif step_type == StepType.OPENAI_MODEL.value:
        model_name = config.model or settings.AGENT_DEFAULT_OPENAI_MODEL
        llm = ChatOpenAI(
            model=model_name,
            temperature=config.temperature,
            max_tokens=max_tokens,
            api_key=config.api_key,
        )
    else:
        raise StepConfigurationError(f"Step type '{step_type}' is not a chat model")

    logger.debug("chat_model_created", provider=step_type, model=model_name, max_tokens=max_tokens)
    return llm
