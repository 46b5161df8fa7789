"""Tests for tutor topic extraction."""
from code_gatekeeper.topics import FALLBACK_TOPICS, TOPIC_RULES, extract_topics


def test_react_component():
    code = "const [n, setN] = useState(0);\nuseEffect(() => { fetch('/api'); }, []);"
    topics = extract_topics(code)
    assert topics[0] == "React Hooks"
    assert "API Calls & HTTP Requests" in topics
    assert "Arrow Functions" in topics
    assert "Variables & Scope" in topics


def test_checklist_order_not_appearance_order():
    """Labels follow the rule list, whatever order the code uses them in."""
    code = "const f = async () => { await x; };\nuseState(1);"
    topics = extract_topics(code)
    assert topics.index("React Hooks") < topics.index("Async/Await & Promises")


def test_error_handling_needs_try_and_catch():
    assert "Error Handling" not in extract_topics("try { run(); } finally { done(); }")
    assert "Error Handling" in extract_topics("try { run(); } catch (e) { log(e); }")


def test_no_duplicates(artifact):
    topics = extract_topics(artifact.source_text)
    assert len(topics) == len(set(topics))


def test_rate_limiter_topics(artifact):
    topics = extract_topics(artifact.source_text)
    assert "TypeScript Types" in topics
    assert "ES6 Modules" in topics
    assert "Spread/Rest Operators" in topics
    assert "Optional Chaining & Nullish Coalescing" in topics
    assert "React Hooks" not in topics


def test_fallback_when_nothing_matches():
    assert extract_topics("print('hi')") == list(FALLBACK_TOPICS)
    assert extract_topics("") == ["General JavaScript", "Code Structure", "Best Practices"]


def test_fourteen_rules():
    assert len(TOPIC_RULES) == 14
