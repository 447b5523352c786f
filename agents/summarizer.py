"""Summarizer agent for turning article bodies into structured summaries.

Each call sends one article to the OpenAI chat-completions API through a
PydanticAI agent with native structured output, so the provider enforces the
ArticleSummary JSON schema. The result is validated again on receipt and
priced with a rough token-split estimate.

There is no retry here: one request per article. Retrying (or not) is the
orchestrator's decision.
"""

import logging
import math

from openai import APIError
from pydantic_ai import Agent, NativeOutput, UsageLimits
from pydantic_ai.exceptions import AgentRunError, UnexpectedModelBehavior
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from config import Config
from errors import ExternalApiError, SummaryValidationError
from models.summary import ArticleSummary, SummaryResult

logger = logging.getLogger(__name__)

# Assumed share of input tokens when only a total is known
INPUT_TOKEN_SHARE = 0.7

SYSTEM_PROMPT = """You are an expert news summarizer. Create engaging, informative summaries that capture readers' attention. Use simple vocabulary, third person perspective, and a conversational tone. Always respond with valid JSON."""

USER_PROMPT = """Summarize this Guardian article from the {section} section. Follow these requirements:

1. Create a compelling heading (not the original title)
2. Categorize in max 3 words (like "Climate Tech", "AI Ethics", "Space Science")
3. Write a 500-word summary that:
   - Starts with a hook sentence to capture attention
   - Is broken into 3-5 paragraphs separated by a blank line
   - Uses a conversational tone
   - Uses simple vocabulary and third person
   - Maintains engaging flow throughout
4. Provide 3 TLDR bullet points (key takeaways)
5. Create 5 relevant FAQs with concise answers

Article text: {text}"""

MIN_HEADING_CHARS = 5
MAX_CATEGORY_WORDS = 3
MIN_SUMMARY_CHARS = 200
TLDR_COUNT = 3
FAQ_COUNT = 5


def estimate_cost(
    tokens: int,
    input_cost_per_1k: float,
    output_cost_per_1k: float,
) -> float:
    """Approximate USD cost from a total token count.

    Splits the total 70/30 into input and output tokens. This is an estimate
    for dashboards, not a billing figure.
    """
    input_tokens = math.floor(tokens * INPUT_TOKEN_SHARE)
    output_tokens = math.floor(tokens * (1 - INPUT_TOKEN_SHARE))
    return (input_tokens / 1000) * input_cost_per_1k + (output_tokens / 1000) * output_cost_per_1k


def validate_summary(summary: ArticleSummary) -> None:
    """Check the shape of a generated summary.

    Raises:
        SummaryValidationError: With the first rule the summary breaks
    """
    if not summary.heading or len(summary.heading.strip()) < MIN_HEADING_CHARS:
        raise SummaryValidationError("heading too short")
    if not summary.category.strip():
        raise SummaryValidationError("category missing")
    if len(summary.category.split()) > MAX_CATEGORY_WORDS:
        raise SummaryValidationError("category too long")
    if len(summary.summary.strip()) < MIN_SUMMARY_CHARS:
        raise SummaryValidationError("summary too short")
    if len(summary.tldr) != TLDR_COUNT or any(not point.strip() for point in summary.tldr):
        raise SummaryValidationError("tldr count mismatch")
    if len(summary.faqs) != FAQ_COUNT or any(
        not faq.question.strip() or not faq.answer.strip() for faq in summary.faqs
    ):
        raise SummaryValidationError("faq incomplete")


def _create_agent(config: Config) -> Agent[None, ArticleSummary]:
    """Create the underlying PydanticAI agent.

    The agent uses:
    - Native structured output: the provider receives ArticleSummary's JSON schema
    - No output retries: a bad response fails the article
    """
    provider = OpenAIProvider(
        api_key=config.openai_api_key or None,
        base_url=config.openai_base_url or None,
    )
    model = OpenAIChatModel(config.summary_model, provider=provider)
    return Agent(
        model,
        output_type=NativeOutput(ArticleSummary, name="article_summary"),
        system_prompt=SYSTEM_PROMPT,
        model_settings=ModelSettings(
            temperature=config.summary_temperature,
            max_tokens=config.summary_max_tokens,
        ),
        retries=0,
    )


class SummarizerAgent:
    """Generates a structured summary for one article body.

    Example:
        >>> summarizer = SummarizerAgent(config)
        >>> result = await summarizer.summarize(clean_text, "science")
        >>> result.summary.heading
        'Why Octopuses Dream in Colour'
    """

    def __init__(self, config: Config):
        """Initialize the summarizer agent.

        Args:
            config: Application configuration with model, key and pricing settings
        """
        self.config = config
        self._agent = _create_agent(config)

    def _build_user_message(self, clean_text: str, section: str) -> str:
        text = clean_text[: self.config.summary_max_input_chars]
        return USER_PROMPT.format(section=section, text=text)

    async def summarize(self, clean_text: str, section: str) -> SummaryResult:
        """Summarize one cleaned article body.

        Args:
            clean_text: Normalized article text (truncated before sending)
            section: Section label, passed to the model as context

        Returns:
            SummaryResult with the validated summary, tokens and cost

        Raises:
            ExternalApiError: Provider, HTTP or network failure
            SummaryValidationError: Malformed or out-of-shape output
        """
        message = self._build_user_message(clean_text, section)
        try:
            result = await self._agent.run(
                message,
                usage_limits=UsageLimits(request_limit=1),
            )
        except UnexpectedModelBehavior as e:
            raise SummaryValidationError(f"malformed summary output: {e}") from e
        except (AgentRunError, APIError) as e:
            raise ExternalApiError(f"Summarization API error: {type(e).__name__}: {e}") from e

        summary = result.output
        validate_summary(summary)

        usage = result.usage
        tokens_used = usage.total_tokens or 0
        cost = estimate_cost(
            tokens_used,
            self.config.input_cost_per_1k,
            self.config.output_cost_per_1k,
        )
        logger.info(
            "Article summarized | section=%s input_chars=%d tokens=%d cost=%.5f",
            section, min(len(clean_text), self.config.summary_max_input_chars),
            tokens_used, cost,
        )
        return SummaryResult(summary=summary, tokens_used=tokens_used, estimated_cost_usd=cost)
