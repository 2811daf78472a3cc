import logging
from typing import Any, Dict, List, Optional

from langchain_core.outputs import ChatGeneration, ChatResult

from .messages import vendor_message_to_message
from .utils import combine_usage, extract_text_content, usage_from_vendor

logger = logging.getLogger(__name__)


def completion_to_chat_result(response: Any) -> ChatResult:
    """
    Translate a complete (non-streamed) GigaChat response.

    Only the first choice is translated. GigaChat returns a single choice
    today; any further ones are dropped.

    Args:
        response: A GigaChat ``ChatCompletion``.

    Returns:
        ChatResult: One generation with ``finish_reason`` in its
        generation info; ``llm_output`` carries token usage and model name.
    """
    choices = response.choices
    if len(choices) > 1:
        logger.debug("Discarding %d extra GigaChat choices", len(choices) - 1)
    choice = choices[0]

    message = vendor_message_to_message(choice.message, response.usage)
    generation = ChatGeneration(
        message=message,
        text=extract_text_content(message.content),
        generation_info={"finish_reason": choice.finish_reason},
    )
    return ChatResult(
        generations=[generation],
        llm_output={
            "token_usage": usage_from_vendor(response.usage) or {},
            "model_name": getattr(response, "model", None),
        },
    )


def combine_llm_outputs(llm_outputs: List[Optional[Dict[str, Any]]]) -> Dict[str, Any]:
    """
    Merge the ``llm_output`` of several results.

    Token usage is summed; outputs that are missing or carry no usage count
    as zero.
    """
    usage = combine_usage(*((output or {}).get("token_usage") for output in llm_outputs))
    combined: Dict[str, Any] = {"token_usage": usage}
    for output in llm_outputs:
        if output and output.get("model_name"):
            combined["model_name"] = output["model_name"]
            break
    return combined
