"""
Topic extraction for the tutor session.

A fixed checklist of substring rules over the generated source text. Rules
are independent; the result follows checklist order, not order of appearance.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TopicRule:
    """A label and the substrings that trigger it."""

    label: str
    any_of: tuple[str, ...] = ()
    # Every substring here must also be present
    all_of: tuple[str, ...] = ()

    def matches(self, source_text: str) -> bool:
        if self.any_of and not any(p in source_text for p in self.any_of):
            return False
        return all(p in source_text for p in self.all_of)


TOPIC_RULES: tuple[TopicRule, ...] = (
    TopicRule("React Hooks", any_of=("useState", "useEffect")),
    TopicRule("Async/Await & Promises", any_of=("async", "await", "Promise")),
    TopicRule("API Calls & HTTP Requests", any_of=("fetch", "axios")),
    TopicRule("Array Methods", any_of=("map(", "filter(", "reduce(")),
    TopicRule("TypeScript Types", any_of=("interface", ": string", ": number")),
    TopicRule("Classes & OOP", any_of=("class ",)),
    TopicRule("Error Handling", all_of=("try", "catch")),
    TopicRule("React Performance Optimization", any_of=("useCallback", "useMemo")),
    TopicRule("React Context API", any_of=("useContext", "createContext")),
    TopicRule("ES6 Modules", any_of=("import", "export")),
    TopicRule("Variables & Scope", any_of=("const ", "let ")),
    TopicRule("Arrow Functions", any_of=("=>",)),
    TopicRule("Spread/Rest Operators", any_of=("...",)),
    TopicRule("Optional Chaining & Nullish Coalescing", any_of=("?.", "??")),
)

FALLBACK_TOPICS: tuple[str, ...] = ("General JavaScript", "Code Structure", "Best Practices")


def extract_topics(source_text: str) -> list[str]:
    """
    Labels of every rule that matches ``source_text``.

    Returns the three fallback labels when nothing matches.
    """
    topics: list[str] = []
    for rule in TOPIC_RULES:
        if rule.label not in topics and rule.matches(source_text or ""):
            topics.append(rule.label)
    return topics or list(FALLBACK_TOPICS)


__all__ = ["FALLBACK_TOPICS", "TOPIC_RULES", "TopicRule", "extract_topics"]
