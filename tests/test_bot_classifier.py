from __future__ import annotations

import pytest

from serve_markdown.services.bot_classifier import (
    OTHER_BOT,
    UNKNOWN_CLIENT,
    classify_user_agent,
)


@pytest.mark.parametrize(
    ("user_agent", "expected"),
    [
        ("Mozilla/5.0 AppleWebKit/537.36 (KHTML, like Gecko; compatible; ClaudeBot/1.0)", "ClaudeBot"),
        ("claude-web/1.0", "ClaudeBot"),
        ("Mozilla/5.0 (compatible; GPTBot/1.2; +https://openai.com/gptbot)", "GPTBot"),
        ("Mozilla/5.0 ChatGPT-User/1.0", "ChatGPT"),
        ("Mozilla/5.0 (compatible; Google-Extended)", "Google AI"),
        ("Mozilla/5.0 (compatible; Googlebot/2.1)", "Googlebot"),
        ("Mozilla/5.0 (compatible; bingbot/2.0)", "Bingbot"),
        ("cohere-ai", "Cohere"),
        ("meta-externalagent/1.1 Meta-ExternalAgent", "Meta AI"),
    ],
)
def test_known_signatures(user_agent: str, expected: str) -> None:
    assert classify_user_agent(user_agent) == expected


def test_first_signature_wins() -> None:
    assert classify_user_agent("GPTBot ClaudeBot") == "ClaudeBot"


def test_generic_crawler_words_fall_back_to_other_bot() -> None:
    assert classify_user_agent("my-little-Crawler/0.1") == OTHER_BOT
    assert classify_user_agent("python-requests scraper") == OTHER_BOT
    assert classify_user_agent("SomeAgent") == OTHER_BOT


def test_browsers_and_empty_are_unknown() -> None:
    assert classify_user_agent("Mozilla/5.0 (X11; Linux x86_64) Firefox/125.0") == UNKNOWN_CLIENT
    assert classify_user_agent("") == UNKNOWN_CLIENT
    assert classify_user_agent(None) == UNKNOWN_CLIENT


def test_signature_match_is_case_sensitive() -> None:
    # Lower-case "claudebot" misses the exact signature but still looks like a bot.
    assert classify_user_agent("claudebot") == OTHER_BOT
