"""
Bot Detection

Classifies a single request as bot or human from its user agent.

Design Decisions:
- Strategy interface (BotClassifier) so the signature list can be swapped
  for an external bot-detection service without touching the redirect flow
- Case-insensitive substring matching against known crawler signatures,
  then generic tokens ('bot', 'crawler', ...)
- A missing user agent is suspicious but not automatically a bot;
  fraud scoring penalizes it separately
- Classification failures fail open (treated as human)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

# Known crawler and link-preview user agent signatures (lowercase)
BOT_USER_AGENTS = (
    "googlebot",
    "bingbot",
    "yandexbot",
    "duckduckbot",
    "slurp",
    "baiduspider",
    "facebookexternalhit",
    "twitterbot",
    "linkedinbot",
    "embedly",
    "showyoubot",
    "outbrain",
    "pinterest",
    "developers.google.com",
    "slackbot",
    "vkshare",
    "w3c_validator",
    "redditbot",
    "applebot",
    "whatsapp",
    "flipboard",
    "tumblr",
    "bitlybot",
    "skypeuripreview",
    "nuzzel",
    "discordbot",
    "google page speed",
    "qwantify",
    "bitrix link preview",
    "xing-contenttabreceiver",
    "chrome-lighthouse",
    "telegrambot",
)

GENERIC_BOT_TOKENS = ("bot", "crawler", "spider", "scraper")


@dataclass(frozen=True)
class BotCheck:
    """Result of classifying a user agent."""
    is_bot: bool
    bot_type: Optional[str] = None
    reason: Optional[str] = None


class BotClassifier(ABC):
    """Strategy interface for bot classification."""

    @abstractmethod
    def classify(self, user_agent: Optional[str]) -> BotCheck:
        pass


class SignatureBotClassifier(BotClassifier):
    """
    Matches user agents against a maintained list of bot signatures.

    Args:
        signatures: Specific crawler signatures; matched first
        generic_tokens: Fallback tokens reported as bot_type 'generic'
    """

    def __init__(
        self,
        signatures: Iterable[str] = BOT_USER_AGENTS,
        generic_tokens: Iterable[str] = GENERIC_BOT_TOKENS,
    ):
        self.signatures = tuple(s.lower() for s in signatures)
        self.generic_tokens = tuple(t.lower() for t in generic_tokens)

    def classify(self, user_agent: Optional[str]) -> BotCheck:
        if not user_agent or not user_agent.strip():
            return BotCheck(is_bot=False, reason="missing user agent")

        ua = user_agent.lower()

        for signature in self.signatures:
            if signature in ua:
                return BotCheck(
                    is_bot=True,
                    bot_type=signature,
                    reason=f"matched bot signature: {signature}"
                )

        for token in self.generic_tokens:
            if token in ua:
                return BotCheck(
                    is_bot=True,
                    bot_type="generic",
                    reason=f"matched generic bot token: {token}"
                )

        return BotCheck(is_bot=False)


def classify_safely(classifier: BotClassifier, user_agent: Optional[str]) -> BotCheck:
    """
    Run a classifier, treating any failure as 'not a bot'.
    """
    try:
        return classifier.classify(user_agent)
    except Exception as e:
        logger.error(f"Bot classification failed, treating as human: {e}", exc_info=True)
        return BotCheck(is_bot=False, reason="classification failed")
