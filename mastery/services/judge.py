import json
import re

import structlog
from anthropic import Anthropic
from django.conf import settings

from ..domain.evaluator import JudgeVerdict, parse_verdict
from ..errors import JudgeError

logger = structlog.get_logger()

_CODE_FENCE = re.compile(r"```(?:json)?\s*|\s*```")

PROMPT_TEMPLATE = """You are grading a student's answer. Be generous with partial credit.

Question: {question}
Expected Answer: {expected_answer}
Student's Answer: {user_answer}
{context_line}
Evaluate if the student's answer is correct. Consider:
- Same meaning with different words = CORRECT
- Key concepts present = PARTIAL CREDIT
- Minor typos/spelling = IGNORE
- Empty or completely wrong = INCORRECT

Respond with ONLY valid JSON (no markdown):
{{"correct":true/false,"score":0-100,"feedback":"one brief sentence"}}"""


def build_prompt(question, expected_answer, user_answer, context=None):
    return PROMPT_TEMPLATE.format(
        question=question,
        expected_answer=expected_answer,
        user_answer=user_answer,
        context_line=f"Context: {context}\n" if context else "",
    )


def parse_reply(text):
    if not text or not text.strip():
        raise JudgeError("empty reply from judge")
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise JudgeError(f"judge reply is not JSON: {exc}") from exc
    return parse_verdict(payload)


class AnthropicJudge:
    """Semantic grading through the Anthropic messages API."""

    def __init__(self, api_key, model, timeout=5.0, max_tokens=150, client=None):
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def judge(self, question, expected_answer, user_answer, context=None) -> JudgeVerdict:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": build_prompt(question, expected_answer, user_answer, context),
                }
            ],
        )
        text = next(
            (block.text for block in response.content if getattr(block, "type", None) == "text"),
            None,
        )
        if text is None:
            raise JudgeError("no text block in judge response")
        return parse_reply(text)


def get_default_judge():
    """The configured judge, or None when no API key is set."""
    conf = settings.MASTERY_JUDGE
    if not conf.get("API_KEY"):
        logger.debug("judge_disabled", reason="missing_api_key")
        return None
    return AnthropicJudge(
        api_key=conf["API_KEY"],
        model=conf["MODEL"],
        timeout=conf["TIMEOUT_SECONDS"],
    )
