"""
Moderation constants.

Category names follow the OpenAI moderation taxonomy. The check order puts
the more specific (and more severe) sub-category ahead of its parent so the
denial message is as precise as possible.
"""

MODERATION_DENIAL_MESSAGE_DEFAULT = (
    "Your message violates our guidelines. I can't answer that."
)

CATEGORY_DENIAL_MESSAGES: dict[str, str] = {
    "sexual": "I can't help with sexual content. Please keep the conversation appropriate.",
    "sexual/minors": "I can't engage with any content that sexualizes minors.",
    "harassment": "I can't help with harassing content. Please keep the conversation respectful.",
    "harassment/threatening": "I can't help with threatening or harassing content.",
    "hate": "I can't help with hateful content.",
    "hate/threatening": "I can't help with hateful or threatening content.",
    "illicit": "I can't help with illegal activities.",
    "illicit/violent": "I can't help with violent or illegal activities.",
    "self-harm": (
        "I can't help with that. If you are struggling, please reach out to a "
        "crisis line or someone you trust."
    ),
    "self-harm/intent": (
        "It sounds like you may be going through a difficult time. Please reach "
        "out to a crisis line or emergency services right away."
    ),
    "self-harm/instructions": (
        "I can't provide that information. If you are struggling, please reach "
        "out to a crisis line or someone you trust."
    ),
    "violence": "I can't help with violent content.",
    "violence/graphic": "I can't help with graphic violent content.",
}

CATEGORY_CHECK_ORDER: tuple[str, ...] = (
    "sexual/minors",
    "sexual",
    "harassment/threatening",
    "harassment",
    "hate/threatening",
    "hate",
    "illicit/violent",
    "illicit",
    "self-harm/instructions",
    "self-harm/intent",
    "self-harm",
    "violence/graphic",
    "violence",
)

# Stream block id used when a message is denied
MODERATION_DENIAL_BLOCK_ID = "moderation-denial-text"
