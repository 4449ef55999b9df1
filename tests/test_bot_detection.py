"""
Tests for bot classification and user agent parsing.
"""

from app.services.bot_detection import (
    BotCheck,
    BotClassifier,
    SignatureBotClassifier,
    classify_safely,
)
from app.services.user_agent import detect_browser, detect_device_type, detect_os
from tests.conftest import CHROME_UA, GOOGLEBOT_UA, IPHONE_UA


class TestSignatureBotClassifier:
    """Test signature-based bot classification."""

    def setup_method(self):
        self.classifier = SignatureBotClassifier()

    def test_known_crawler(self):
        result = self.classifier.classify(GOOGLEBOT_UA)
        assert result.is_bot
        assert result.bot_type == "googlebot"

    def test_link_preview_agents(self):
        for ua in ["facebookexternalhit/1.1", "Slackbot-LinkExpanding 1.0", "WhatsApp/2.23.20.0"]:
            assert self.classifier.classify(ua).is_bot, f"Should be a bot: {ua}"

    def test_matching_is_case_insensitive(self):
        assert self.classifier.classify("BINGBOT/2.0").bot_type == "bingbot"

    def test_generic_token(self):
        result = self.classifier.classify("Mozilla/5.0 (compatible; SomeNewCrawler/1.0)")
        assert result.is_bot
        assert result.bot_type == "generic"

    def test_regular_browsers_are_human(self):
        assert self.classifier.classify(CHROME_UA) == BotCheck(is_bot=False)
        assert not self.classifier.classify(IPHONE_UA).is_bot

    def test_missing_user_agent_is_not_a_bot(self):
        """Missing UA is penalized by fraud scoring, not flagged as a bot."""
        for ua in [None, "", "   "]:
            result = self.classifier.classify(ua)
            assert not result.is_bot
            assert result.reason == "missing user agent"

    def test_custom_signatures(self):
        classifier = SignatureBotClassifier(signatures=["acme-monitor"], generic_tokens=[])
        assert classifier.classify("ACME-Monitor/3").bot_type == "acme-monitor"
        assert not classifier.classify(GOOGLEBOT_UA).is_bot


class ExplodingClassifier(BotClassifier):
    def classify(self, user_agent):
        raise RuntimeError("signature service down")


def test_classify_safely_fails_open():
    result = classify_safely(ExplodingClassifier(), GOOGLEBOT_UA)
    assert not result.is_bot
    assert result.reason == "classification failed"


class TestUserAgentParsing:

    def test_desktop_chrome(self):
        assert detect_device_type(CHROME_UA) == "desktop"
        assert detect_browser(CHROME_UA) == "Chrome"
        assert detect_os(CHROME_UA) == "Windows 10"

    def test_iphone_safari(self):
        assert detect_device_type(IPHONE_UA) == "mobile"
        assert detect_browser(IPHONE_UA) == "Safari"
        assert detect_os(IPHONE_UA) == "iOS"

    def test_ipad_is_tablet(self):
        ua = "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"
        assert detect_device_type(ua) == "tablet"

    def test_edge_is_not_reported_as_chrome(self):
        ua = CHROME_UA + " Edg/120.0.0.0"
        assert detect_browser(ua) == "Edge"

    def test_missing_user_agent(self):
        assert detect_device_type(None) == "unknown"
        assert detect_browser("") is None
        assert detect_os(None) is None
