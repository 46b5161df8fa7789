"""
Prompt templates for generation, grading and the voice agent.

All builders are deterministic: the same inputs always give the same text.
"""

from __future__ import annotations

from collections.abc import Sequence

from .session_schema import GeneratedArtifact, Segment

GENERATION_PROMPT = """You are an expert code generator. Generate clean, production-ready code based on the user's feature request.

Return your response in the following JSON format (and nothing else, just the JSON):
{{
  "code": "the complete code implementation",
  "language": "the programming language used",
  "blocks": [
    {{
      "id": "block_1",
      "code": "a logical section of the code",
      "explanation": "what this section does in 1-2 sentences",
      "question": "a quiz question to test understanding of this block"
    }}
  ]
}}

Break the code into 2-4 logical blocks that can be tested for understanding.
Make questions specific and technical, like:
- "What happens if the user input is empty?"
- "How does this function handle errors?"
- "What security consideration is addressed here?"

Generate code for the following feature: {feature_prompt}"""


EVALUATION_PROMPT = """You are evaluating a developer's understanding of code. Score their explanation from 0-100.

Return ONLY a JSON object: {{ "score": number, "feedback": "brief feedback", "passed": boolean }}

Pass threshold is {threshold}. Be fair but rigorous - they should demonstrate actual understanding, not just repeat keywords.

Code:
{code}

Expected understanding:
{expected}

Developer's explanation:
{explanation}"""


BLOCK_QUESTION_PROMPT = """Generate a single, specific technical question to test if a developer understands this code block. The question should be answerable in 1-2 sentences.

Code:
{code}

Expected understanding:
{explanation}"""


QUIZ_ROLE_PREAMBLE = """You are the Code Gatekeeper, a strict but fair code reviewer who tests developers' understanding before allowing code to ship.

CRITICAL: You must actually ASSESS the user's answers against the expected understanding provided below.

Your role:
1. Ask ONE question at a time about the code
2. Listen carefully to their answer
3. Evaluate if they demonstrated understanding based on the expected answer
4. Give specific feedback: "Correct!" or "Not quite - let me explain..."
5. Track their score mentally (correct answers vs total)
6. Be encouraging but maintain high standards"""


QUIZ_ASSESSMENT_RULES = """ASSESSMENT RULES:
- If they explain the concept correctly (even with different words), say "Correct!" or "Good job!"
- If they're partially right, acknowledge what they got right and clarify what's missing
- If they're wrong, say "Not quite" and briefly explain the correct answer
- After 3-5 questions, give a final verdict

Start by saying: "I'm the Code Gatekeeper. Before this code ships, I need to verify you understand it. Let me ask you a few questions. Here's the first one..."

At the end, summarize:
- How many they got right
- Say "PASS - you clearly understand this code!" if they got most right
- Say "FAIL - let's review some concepts" if they struggled"""


QUIZ_FIRST_MESSAGE = (
    "Hello! I'm the Code Gatekeeper. Before this code can ship, I need to verify "
    "you understand what it does. Let's go through a few questions. Are you ready?"
)


GENERAL_TUTOR_PROMPT = """You are a friendly and knowledgeable programming tutor. Your role is to:

1. Help users learn programming concepts in an engaging, conversational way
2. Explain complex topics simply using analogies and examples
3. Answer questions about any programming language, framework, or concept
4. Provide code examples when helpful (describe them verbally)
5. Encourage curiosity and experimentation
6. Be patient and supportive, especially with beginners

Start by asking what programming topic they'd like to learn about today. Be conversational and friendly!"""


TUTOR_FIRST_MESSAGE = "Hello! I'm your programming tutor. What would you like to learn about today?"


def build_generation_prompt(feature_prompt: str) -> str:
    """User message asking for code plus quiz blocks as JSON."""
    return GENERATION_PROMPT.format(feature_prompt=feature_prompt)


def build_evaluation_prompt(code: str, expected: str, explanation: str, threshold: int = 70) -> str:
    """User message asking for a 0-100 grade of an explanation."""
    return EVALUATION_PROMPT.format(
        code=code,
        expected=expected,
        explanation=explanation,
        threshold=threshold,
    )


def build_block_question_prompt(code: str, explanation: str) -> str:
    """User message asking for one comprehension question."""
    return BLOCK_QUESTION_PROMPT.format(code=code, explanation=explanation)


def format_questions(segments: Sequence[Segment]) -> str:
    """Numbered questions with expected answers, in segment order."""
    return "\n\n".join(
        f"Question {i + 1}: {segment.question}\nExpected understanding: {segment.explanation}"
        for i, segment in enumerate(segments)
    )


def build_quiz_agent_prompt(artifact: GeneratedArtifact) -> str:
    """
    Instruction prompt for the quiz agent.

    Args:
        artifact: Generated code and its segments

    Returns:
        Role preamble, the code, the ordered questions and the assessment rules
    """
    return (
        f"{QUIZ_ROLE_PREAMBLE}\n\n"
        f"The code being reviewed:\n```\n{artifact.source_text}\n```\n\n"
        f"Questions to ask with expected answers:\n{format_questions(artifact.segments)}\n\n"
        f"{QUIZ_ASSESSMENT_RULES}"
    )


def build_tutor_prompt(artifact: GeneratedArtifact | None, topic: str | None) -> str:
    """
    Instruction prompt for the tutor agent.

    With an artifact and a topic, the tutor lectures on the topic using the
    code as the running example. Without an artifact it is a general tutor,
    optionally steered to ``topic``.
    """
    if artifact is not None and topic:
        return f"""You are a friendly programming tutor giving a short lecture about "{topic}".

CONTEXT: The student is learning from this code example:
```
{artifact.source_text}
```

YOUR TASK:
1. Give a 2-3 minute verbal lecture about "{topic}"
2. Reference specific parts of the code above as examples
3. Explain WHY things work the way they do
4. Use simple analogies when helpful
5. After explaining, ask if they have any questions

START by saying: "Let me teach you about {topic}. Looking at this code..."

Be conversational, engaging, and educational. Pause occasionally to check understanding."""

    if topic:
        return (
            f"{GENERAL_TUTOR_PROMPT}\n\nThe user wants to learn about: {topic}. "
            "Start by introducing yourself and then dive into this topic."
        )
    return GENERAL_TUTOR_PROMPT


__all__ = [
    "QUIZ_FIRST_MESSAGE",
    "TUTOR_FIRST_MESSAGE",
    "build_block_question_prompt",
    "build_evaluation_prompt",
    "build_generation_prompt",
    "build_quiz_agent_prompt",
    "build_tutor_prompt",
    "format_questions",
]
