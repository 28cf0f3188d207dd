# prompts.py
from __future__ import annotations
import json
from typing import Any

from resumeflame.errors import MalformedOutputError
from resumeflame.models import Critique, Tier

ROAST_TEMPERATURE = 0.9
FIX_TEMPERATURE = 0.7

ROAST_SYSTEM_PROMPT = (
    "You are ResumeFlame, a brutally honest and funny resume reviewer. "
    "Your job is to roast resumes with savage but constructive humor, "
    "like a talent-show judge reviewing a resume.\n\n"
    "You MUST respond in this exact JSON format:\n"
    "{\n"
    "  \"score\": <number 1-10>,\n"
    "  \"roast_lines\": [<array of 5-8 savage roast lines>],\n"
    "  \"issues\": [<array of 3-5 serious issues found>],\n"
    "  \"one_liner\": \"<a single devastating one-liner summary>\"\n"
    "}\n\n"
    "Rules:\n"
    "- Be funny but not mean-spirited; the goal is to help\n"
    "- Point out real problems (weak verbs, no metrics, bad formatting, buzzwords, etc.)\n"
    "- Each roast line should address a specific problem in the resume\n"
    "- Score fairly: 1-3 = bad, 4-6 = mediocre, 7-8 = good, 9-10 = excellent\n"
    "- Keep it entertaining so people want to share their results"
)

_FIX_RULES = [
    "Replace weak action verbs with strong ones (Led, Built, Drove, Achieved, etc.)",
    "Add quantifiable metrics where possible (even reasonable estimates)",
    "Remove buzzwords and fluff",
    "Keep it concise (aim for 1 page worth of content)",
    "Use professional formatting with clear sections",
    "Make each bullet point achievement-focused, not task-focused",
]

_PRO_RULES = [
    "Also optimize for ATS (Applicant Tracking Systems) with relevant keywords",
    "Include a professional summary at the top",
    "Generate a brief cover letter template at the end",
]


def fix_system_prompt(tier: str) -> str:
    rules = list(_FIX_RULES)
    if tier == Tier.PRO.value:
        rules += _PRO_RULES
    return (
        "You are an expert resume writer. Rewrite the following resume to be significantly better.\n\n"
        "Rules:\n"
        + "\n".join(f"- {r}" for r in rules)
        + "\n\nReturn the rewritten resume as clean, well-formatted text."
    )


def _strip_fences(content: str) -> str:
    # Some models wrap JSON in markdown fences like ```json ... ```; strip them.
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = "\n".join(cleaned.splitlines()[1:])
    if cleaned.endswith("```"):
        cleaned = "\n".join(cleaned.splitlines()[:-1])
    return cleaned.strip()


def _str_list(data: dict, key: str) -> list[str]:
    value = data.get(key)
    if not isinstance(value, list):
        raise MalformedOutputError(f"critique field '{key}' must be a list")
    return [str(x).strip() for x in value if str(x).strip()]


def parse_critique(content: str) -> Critique:
    """Parse the model's JSON critique.

    The score is clamped to 1..10; anything that is not the expected
    object shape raises MalformedOutputError.
    """
    try:
        data: Any = json.loads(_strip_fences(content))
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"critique is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedOutputError("critique must be a JSON object")

    try:
        score = int(round(float(data.get("score", 5))))
    except (TypeError, ValueError) as e:
        raise MalformedOutputError("critique score is not a number") from e

    one_liner = data.get("one_liner")
    if not isinstance(one_liner, str) or not one_liner.strip():
        raise MalformedOutputError("critique is missing 'one_liner'")

    return Critique(
        score=max(1, min(10, score)),
        roast_lines=_str_list(data, "roast_lines"),
        issues=_str_list(data, "issues"),
        one_liner=one_liner.strip(),
    )
