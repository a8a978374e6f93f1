from __future__ import annotations

import re

OTHER_BOT = "Other Bot"
UNKNOWN_CLIENT = "Browser / Unknown"

# First match wins, so more specific signatures must precede looser ones.
KNOWN_BOT_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("ClaudeBot", "ClaudeBot"),
    ("claude-web", "ClaudeBot"),
    ("GPTBot", "GPTBot"),
    ("ChatGPT-User", "ChatGPT"),
    ("OAI-SearchBot", "OAI-SearchBot"),
    ("Google-Extended", "Google AI"),
    ("Googlebot", "Googlebot"),
    ("Bingbot", "Bingbot"),
    ("bingbot", "Bingbot"),
    ("PerplexityBot", "PerplexityBot"),
    ("YouBot", "YouBot"),
    ("CCBot", "CCBot"),
    ("cohere-ai", "Cohere"),
    ("Applebot", "Applebot"),
    ("Bytespider", "Bytespider"),
    ("Meta-ExternalAgent", "Meta AI"),
)

GENERIC_CRAWLER_PATTERN = re.compile(r"bot|crawl|spider|agent|scraper", re.IGNORECASE)


def classify_user_agent(user_agent: str | None) -> str:
    if not user_agent:
        return UNKNOWN_CLIENT

    for signature, bot_name in KNOWN_BOT_SIGNATURES:
        if signature in user_agent:
            return bot_name

    if GENERIC_CRAWLER_PATTERN.search(user_agent):
        return OTHER_BOT
    return UNKNOWN_CLIENT
