"""Summary and narrative wording for operations."""

import json
import logging
import re

from route_doc_agent.errors import SynthesisError
from route_doc_agent.llm import LlmClient
from route_doc_agent.parser.base import HandlerBinding

logger = logging.getLogger(__name__)

MAX_SUMMARY_WORDS = 6

DEFAULT_VERBS = {
    "get": "Get",
    "head": "Get",
    "options": "Describe",
    "post": "Create",
    "put": "Replace",
    "patch": "Update",
    "delete": "Delete",
}

# imperative -> third person, for synthesized narratives
THIRD_PERSON = {
    "get": "Returns",
    "fetch": "Returns",
    "find": "Finds",
    "list": "Lists",
    "search": "Searches",
    "create": "Creates",
    "add": "Adds",
    "update": "Updates",
    "replace": "Replaces",
    "set": "Sets",
    "patch": "Updates",
    "delete": "Deletes",
    "remove": "Removes",
    "describe": "Describes",
    "invite": "Invites",
    "join": "Joins",
    "leave": "Leaves",
    "accept": "Accepts",
    "reject": "Rejects",
    "approve": "Approves",
    "send": "Sends",
    "upload": "Uploads",
    "download": "Downloads",
    "check": "Checks",
    "count": "Counts",
    "register": "Registers",
    "login": "Logs in",
    "logout": "Logs out",
}

NARRATIVE_PROMPT = """You write reference documentation for HTTP API operations.

Given an operation's method, path, handler name and scope, write exactly ONE sentence
in the present tense describing what the operation does for the caller.
Do not mention databases, tables, caches, queues, frameworks or transport details.
Output only the sentence."""


def split_words(name: str) -> list[str]:
    """Split camelCase / snake_case / kebab-case identifiers into lowercase words."""
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", name)
    spaced = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", spaced)
    return [w.lower() for w in re.split(r"[\s_\-]+", spaced) if w]


def pascal_case(name: str) -> str:
    return "".join(w.capitalize() for w in split_words(name))


def singular(word: str) -> str:
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if word.endswith(("sses", "shes", "ches", "xes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def tag_name(scope: str) -> str:
    """'associations' -> 'Associations', 'member-roles' -> 'Member Roles'."""
    return " ".join(w.capitalize() for w in split_words(scope)) or scope


def summarize(binding: HandlerBinding) -> str:
    """An imperative phrase of at most six words."""
    words = split_words(binding.handler_name)
    if not words or words[0] not in THIRD_PERSON:
        words = [DEFAULT_VERBS.get(binding.http_verb, "Handle").lower()] + (words or split_words(binding.scope_name))
    words = words[:MAX_SUMMARY_WORDS]
    return " ".join([words[0].capitalize()] + words[1:])


def describe(binding: HandlerBinding) -> str:
    """A one-sentence, present-tense narrative built from the handler name."""
    words = split_words(binding.handler_name)
    if words and words[0] in THIRD_PERSON:
        verb, rest = THIRD_PERSON[words[0]], words[1:]
    else:
        default = DEFAULT_VERBS.get(binding.http_verb)
        verb = THIRD_PERSON[default.lower()] if default else "Handles"
        rest = words
    if not rest:
        rest = split_words(binding.scope_name)
    return f"{verb} {' '.join(rest)}."


class NarrativeWriter:
    """Words narratives, through an LLM when a model is configured."""

    def __init__(self, model: str | None = None):
        self.client = LlmClient(model=model) if model else None

    def write(self, binding: HandlerBinding, docstring: str | None) -> str:
        if docstring:
            return docstring
        if self.client is None:
            return describe(binding)

        user_prompt = json.dumps(
            {
                "method": binding.http_verb.upper(),
                "path": binding.path,
                "handler": binding.handler_name,
                "scope": binding.scope_name,
            },
            indent=2,
        )
        try:
            response = self.client.call(system=NARRATIVE_PROMPT, user=user_prompt)
        except Exception as e:
            raise SynthesisError(
                f"Model {self.client.model} failed to word the narrative for handler '{binding.handler_name}': {e}",
                construct=binding.handler_name,
                context={"model": self.client.model},
            ) from e
        sentence = next((line.strip() for line in response.splitlines() if line.strip()), "")
        if not sentence:
            logger.warning("Model returned no narrative for %s; using the derived one", binding.handler_name)
            return describe(binding)
        return sentence
