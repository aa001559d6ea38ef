"""
src/orchestrator/prompts.py

Planning and answering prompt templates, plus the fixed replies the assistant
falls back on.
"""


import json
from typing import Any, Dict, List

from config import ASSISTANT_NAME, DEFAULT_OS, DEFAULT_PROVIDER, DEFAULT_PURCHASE_OPTION
from tools.permissions import ALLOWED_TOOLS


# Fixed replies
UNPARSEABLE_PLAN = "I couldn't interpret that request. Could you rephrase?"
NEED_MORE_DETAIL = "I need more detail to continue. What provider and region should I use?"
TOOL_REFUSAL = f"I can only use: {', '.join(ALLOWED_TOOLS)}."
TOOL_FAILURE = (
    "I couldn't complete that request because the data source rejected the tool input. "
    "Try adding a specific provider and region, or rephrase the request."
)


PLAN_TEMPLATE = """SYSTEM:
You are {assistant}. You must respond with ONLY JSON, no markdown.
Allowed tools:
- list_providers
- list_families(provider)
- search_instances(provider, region?, vcpus?, memoryGiB?, gpu?, family?, priceMax?, purchaseOption?, os?)
- get_pricing(provider, instanceType, region, purchaseOption, os)
- compare_instances(provider, list, region, purchaseOption, os)
Never call any tool other than the list above. Do not call bash or filesystem tools.
Default purchaseOption to {purchase_option} and os to {os} when not specified. Default provider to {provider} when not specified.
For pricing by family, if an instance size isn't specified, pick the smallest instance type returned by search_instances for that family and proceed. If the family list is large, limit to the first 10 families and note that in the answer.
Avoid asking multiple follow-up questions; make reasonable defaults and proceed.
If a tool call is required, reply with:
{{"action":"call_tools","calls":[{{"name":"tool_name","args":{{...}}}}]}}
If clarification is required, reply with:
{{"action":"ask_clarifying_question","question":"..."}}
If no tool is needed, reply with:
{{"action":"direct_answer","answer":"..."}}
For comparisons across providers, call get_pricing multiple times (one per provider) and then respond.
USER:
{user}
"""

ANSWER_TEMPLATE = """SYSTEM:
You are {assistant}. Use ONLY the tool results provided. Never invent prices or specs.
Keep the response short. If pricing is requested, include provider, region, OS, purchase option, hourly price, and key specs.
If required data is missing, ask exactly one clarifying question.
If returning a structured answer, use:
{{"action":"direct_answer","answer":{{"message":"...","comparable_options":[{{"instanceType":"...","minPrice":"..."}}],"note":"..."}}}}
For comparisons, prefer the structured direct_answer format.
If you need to return a table, use:
{{"action":"direct_answer","answer":{{"message":"...","table":[["col1","col2"],["row1","row1"]],"note":"..."}}}}
Do not omit requested details; avoid summarizing unless the user asks for a summary.
USER:
{user}
TOOL_RESULTS:
{results}
"""


def build_plan_prompt(user_text: str) -> str:

    return PLAN_TEMPLATE.format(
        assistant=ASSISTANT_NAME,
        purchase_option=DEFAULT_PURCHASE_OPTION,
        os=DEFAULT_OS,
        provider=DEFAULT_PROVIDER.value,
        user=user_text,
    )


def build_answer_prompt(user_text: str, tool_results: List[Dict[str, Any]]) -> str:
    """Second round: the model may only use `tool_results` to answer."""

    results_json = json.dumps(tool_results, ensure_ascii=False, separators=(",", ":"), default=str)

    return ANSWER_TEMPLATE.format(assistant=ASSISTANT_NAME, user=user_text, results=results_json)
