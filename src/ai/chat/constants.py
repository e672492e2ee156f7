"""Chat flow constants."""

TEXT_BLOCK_ID_TEMPLATE = "text-{index}"
REASONING_BLOCK_ID_TEMPLATE = "reasoning-{reasoning_id}"
SOURCE_ID_TEMPLATE = "source-{index}"

MISSING_CREDENTIALS_BLOCK_ID = "missing-credentials-text"
MISSING_CREDENTIALS_MESSAGE = (
    "The assistant is not configured: OPENAI_API_KEY is missing. "
    "Set it in the server environment and try again."
)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer clearly and concisely, cite sources "
    "when you use web search results, and say so when you are unsure."
)
