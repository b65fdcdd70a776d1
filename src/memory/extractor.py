"""Pattern-based fact extraction from user utterances.

Definitional matchers run in a fixed order and the first acceptable match
wins. Identity matchers always run. Topic detection looks up every known
concept name in the utterance.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

import structlog

from .models import ConceptCandidate, Extraction

logger = structlog.get_logger()

MIN_DEFINITION_LENGTH = 10
MAX_DEFINITION_LENGTH = 500  # exclusive
MIN_TOPIC_LENGTH = 4

REJECTED_SUBJECTS = frozenset(
    {
        "you",
        "i",
        "we",
        "they",
        "he",
        "she",
        "it",
        "my",
        "your",
        "this",
        "that",
        "there",
        "what",
        "how",
        "why",
    }
)

# Words that follow "I'm" / "I am" without being a name
NOT_A_NAME = frozenset(
    {
        "from",
        "not",
        "so",
        "very",
        "just",
        "also",
        "really",
        "here",
        "going",
        "working",
        "living",
        "the",
        "an",
        "fine",
        "good",
        "okay",
        "sure",
        "sorry",
    }
)

_SUBJECT = r"([a-zA-Z][a-zA-Z\s]{1,40})"


@dataclass
class DefinitionMatch:
    """Raw subject/predicate captured by a definition matcher."""

    subject: str
    predicate: str


@dataclass
class IdentityMatch:
    """An attribute the user stated about themselves."""

    attribute: str  # name, occupation, location
    value: str


class DefinitionMatcher:
    """One definitional phrasing: captures subject and predicate."""

    def __init__(self, name: str, pattern: re.Pattern[str]) -> None:
        self.name = name
        self.pattern = pattern

    def match(self, text: str) -> Optional[DefinitionMatch]:
        m = self.pattern.search(text)
        if not m or not m.group(1) or not m.group(2):
            return None
        return DefinitionMatch(subject=m.group(1), predicate=m.group(2))


class IdentityMatcher:
    """One self-description phrasing mapped to a user attribute."""

    def __init__(
        self,
        attribute: str,
        pattern: re.Pattern[str],
        normalize: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self.name = attribute
        self.attribute = attribute
        self.pattern = pattern
        self._normalize = normalize

    def match(self, text: str) -> Optional[IdentityMatch]:
        m = self.pattern.search(text)
        if not m or not m.group(1):
            return None
        value = m.group(1).strip()
        if self._normalize:
            value = self._normalize(value)
        if not value:
            return None
        return IdentityMatch(attribute=self.attribute, value=value)


def _normalize_name(value: str) -> Optional[str]:
    if value.lower() in NOT_A_NAME or value.lower() in REJECTED_SUBJECTS:
        return None
    return value[0].upper() + value[1:].lower()


DEFINITION_MATCHERS: List[DefinitionMatcher] = [
    DefinitionMatcher(
        "copula",
        re.compile(
            rf"^{_SUBJECT}\s+(?:is|are|means?|refers? to)\s+(.{{10,}})$", re.I
        ),
    ),
    DefinitionMatcher("colon", re.compile(rf"^{_SUBJECT}\s*:\s*(.{{10,}})$")),
    DefinitionMatcher(
        "teaching",
        re.compile(
            r"(?:teach you about|let me tell you about|here's what|fyi|btw)\s+"
            rf"{_SUBJECT}[:.]?\s*(.{{10,}})",
            re.I,
        ),
    ),
    DefinitionMatcher(
        "did_you_know",
        re.compile(
            r"(?:did you know|fun fact|remember that)\s+(?:that\s+)?"
            rf"{_SUBJECT}\s+(?:is|are)\s+(.{{10,}})",
            re.I,
        ),
    ),
    DefinitionMatcher(
        "define",
        re.compile(
            rf"(?:the definition of|define)\s+{_SUBJECT}\s+(?:is|as)\s+(.{{10,}})",
            re.I,
        ),
    ),
    DefinitionMatcher(
        "article",
        re.compile(rf"^(?:a|an|the)\s+{_SUBJECT}\s+is\s+(.{{10,}})$", re.I),
    ),
    DefinitionMatcher("dash", re.compile(rf"^{_SUBJECT}\s*[-–—]\s*(.{{10,}})$")),
]

IDENTITY_MATCHERS: List[IdentityMatcher] = [
    IdentityMatcher(
        "name",
        re.compile(r"(?:my name is|i'm|i am|call me)\s+([A-Z][a-z]+)", re.I),
        normalize=_normalize_name,
    ),
    IdentityMatcher(
        "occupation",
        re.compile(r"(?:i work (?:at|for)|my job is|i'm a|i am a)\s+(.+)", re.I),
    ),
    IdentityMatcher(
        "location",
        re.compile(r"(?:i live in|i'm from|i come from)\s+(.+)", re.I),
    ),
]


def is_question(text: str) -> bool:
    return text.strip().endswith("?")


class FactExtractor:
    """Turn a raw utterance into candidate facts, identity and topics."""

    def __init__(
        self,
        known_concepts: Optional[Callable[[], Iterable[str]]] = None,
        definition_matchers: Optional[List[DefinitionMatcher]] = None,
        identity_matchers: Optional[List[IdentityMatcher]] = None,
    ) -> None:
        self._known_concepts = known_concepts
        self.definition_matchers = (
            definition_matchers
            if definition_matchers is not None
            else list(DEFINITION_MATCHERS)
        )
        self.identity_matchers = (
            identity_matchers
            if identity_matchers is not None
            else list(IDENTITY_MATCHERS)
        )

    def extract(self, utterance: str) -> Extraction:
        """Extract a definition, identity attributes and topic mentions.

        Never raises for ordinary text; a miss returns an empty Extraction.
        """
        text = utterance.strip()
        result = Extraction()

        result.identity = self.extract_identity(text)
        if is_question(text):
            # Questions never teach: no definition, no topics
            return result

        result.definition = self.extract_definition(text)
        result.topics = self.detect_topics(text)

        if result.definition:
            logger.debug(
                "Definition extracted",
                concept=result.definition.concept,
                length=len(result.definition.definition),
            )
        return result

    def extract_definition(self, text: str) -> Optional[ConceptCandidate]:
        for matcher in self.definition_matchers:
            found = matcher.match(text)
            if found is None:
                continue
            candidate = self._accept(found)
            if candidate:
                return candidate
        return None

    @staticmethod
    def _accept(found: DefinitionMatch) -> Optional[ConceptCandidate]:
        concept = found.subject.strip().lower()
        definition = found.predicate.strip()
        if concept in REJECTED_SUBJECTS:
            return None
        if not MIN_DEFINITION_LENGTH <= len(definition) < MAX_DEFINITION_LENGTH:
            return None
        if "?" in definition:
            return None
        return ConceptCandidate(concept=concept, definition=definition)

    def extract_identity(self, text: str) -> dict[str, str]:
        identity: dict[str, str] = {}
        for matcher in self.identity_matchers:
            found = matcher.match(text)
            if found:
                identity[found.attribute] = found.value
        return identity

    def detect_topics(self, text: str) -> List[str]:
        if not self._known_concepts:
            return []
        lower = text.lower()
        return [
            key
            for key in self._known_concepts()
            if len(key) >= MIN_TOPIC_LENGTH and key in lower
        ]
