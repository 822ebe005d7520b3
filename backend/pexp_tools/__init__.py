from .notifications import MailgunConfig, MailgunNotifier, NotificationReport
from .prompt_builder import build_summary_prompt
from .summary_provider import AnthropicSummaryProvider, SummaryProviderConfig, SummaryProviderError

__all__ = [
    "AnthropicSummaryProvider",
    "SummaryProviderConfig",
    "SummaryProviderError",
    "MailgunConfig",
    "MailgunNotifier",
    "NotificationReport",
    "build_summary_prompt",
]
