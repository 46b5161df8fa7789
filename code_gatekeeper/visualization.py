"""
Transcript, score and status presentation.

Pure rendering: nothing here mutates session state. Text output is for the
terminal front-end, HTML and markdown for export and the HTTP API.
"""

from __future__ import annotations

import html
import json
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .config import GatekeeperConfig
from .session_manager import SessionState
from .session_schema import ApprovalRecord, SessionStatus, Speaker, TranscriptEntry


class ExportFormat(Enum):
    """Supported export formats."""

    TEXT = "text"
    JSON = "json"
    HTML = "html"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class StatusView:
    """Display label and icon for a status."""

    label: str
    icon: str
    busy: bool = False


STATUS_VIEWS: dict[SessionStatus, StatusView] = {
    SessionStatus.IDLE: StatusView("Awaiting Code", "🛡️"),
    SessionStatus.GENERATING: StatusView("Generating...", "⏳", busy=True),
    SessionStatus.READY: StatusView("Ready for Quiz", "❔"),
    SessionStatus.ACTIVE: StatusView("Quiz in Progress", "🎙️"),
    SessionStatus.EVALUATING: StatusView("Evaluating...", "⏳", busy=True),
    SessionStatus.PASSED: StatusView("Approved", "✅"),
    SessionStatus.FAILED: StatusView("Blocked", "❌"),
}

SPEAKER_LABELS: dict[Speaker, str] = {
    Speaker.USER: "You",
    Speaker.AGENT: "Gatekeeper",
}


def score_passed(score: int, threshold: int = 70) -> bool:
    return score >= threshold


def render_score_bar(score: int, threshold: int = 70, width: int = 40) -> str:
    """
    Text score bar with a threshold marker.

    Example: ``[#########|.......] 55/100 (70% to pass)``
    """
    score = max(0, min(100, score))
    filled = round(width * score / 100)
    marker = min(width - 1, round(width * threshold / 100))
    cells = ["#" if i < filled else "." for i in range(width)]
    cells[marker] = "|"
    verdict = "PASS" if score_passed(score, threshold) else f"{threshold}% to pass"
    return f"[{''.join(cells)}] {score}/100 ({verdict})"


def render_status(status: SessionStatus, score: int | None = None) -> str:
    """One-line status indicator."""
    view = STATUS_VIEWS[status]
    line = f"{view.icon} {view.label}"
    if score is not None:
        line += f"  Score: {score}/100"
    return line


def render_entry(entry: TranscriptEntry) -> str:
    """One transcript line: ``[HH:MM:SS] Speaker: text``."""
    stamp = entry.created_at.strftime("%H:%M:%S")
    return f"[{stamp}] {SPEAKER_LABELS[entry.speaker]}: {entry.text}"


def render_transcript(entries: Sequence[TranscriptEntry]) -> str:
    if not entries:
        return "(no conversation yet)"
    return "\n".join(render_entry(e) for e in entries)


def render_config_banner(config: GatekeeperConfig) -> str | None:
    """Banner listing credential status, or None when fully configured."""
    if config.is_configured():
        return None
    items = config.banner_items()
    lines = ["API keys missing. Configure them in .env to enable the voice quiz:"]
    for item in items["required"]:
        mark = "✓" if item["configured"] else "✗"
        hint = "" if item["configured"] or not item["url"] else f" ({item['url']})"
        lines.append(f"  {mark} {item['name']}{hint}")
    lines.append("Optional:")
    for item in items["optional"]:
        mark = "✓" if item["configured"] else "-"
        lines.append(f"  {mark} {item['name']}")
    return "\n".join(lines)


def render_topics(topics: Sequence[str], selected: str | None = None) -> str:
    """Numbered topic list; the selected one is starred."""
    if not topics:
        return "Generate code first to see available topics"
    return "\n".join(
        f"{'*' if topic == selected else ' '} {i + 1}. {topic}" for i, topic in enumerate(topics)
    )


def render_approval(record: ApprovalRecord) -> str:
    lines = ["APPROVED" if record.approved else "BLOCKED"]
    if record.feedback:
        lines.append(record.feedback)
    if record.external_reference:
        lines.append(f"Pull request: {record.external_reference}")
    return "\n".join(lines)


class SessionRenderer:
    """Render a ``SessionState`` in several formats."""

    def __init__(self, state: SessionState, threshold: int = 70):
        self.state = state
        self.threshold = threshold

    def render_text(self) -> str:
        parts = [render_status(self.state.status, self.state.score)]
        if self.state.score is not None:
            parts.append(render_score_bar(self.state.score, self.threshold))
        parts.append(render_transcript(self.state.transcript))
        return "\n".join(parts)

    def to_dict(self) -> dict:
        return {
            "status": self.state.status.value,
            "mode": self.state.mode.value if self.state.mode else None,
            "topic": self.state.topic,
            "score": self.state.score,
            "threshold": self.threshold,
            "transcript": [
                {
                    "id": e.id,
                    "speaker": e.speaker.value,
                    "text": e.text,
                    "created_at": e.created_at.isoformat(),
                }
                for e in self.state.transcript
            ],
        }

    def _export_markdown(self) -> str:
        lines = ["# Code Gatekeeper session", "", f"**Status:** {render_status(self.state.status)}"]
        if self.state.score is not None:
            lines.append(f"**Score:** {self.state.score}/100 (threshold {self.threshold})")
        lines.append("")
        for entry in self.state.transcript:
            lines.append(f"- **{SPEAKER_LABELS[entry.speaker]}** ({entry.created_at:%H:%M:%S}): {entry.text}")
        return "\n".join(lines)

    def _export_html(self) -> str:
        rows = []
        for entry in self.state.transcript:
            rows.append(
                f'<div class="entry {entry.speaker.value}">'
                f'<span class="time">{entry.created_at:%H:%M:%S}</span> '
                f'<span class="speaker">{html.escape(SPEAKER_LABELS[entry.speaker])}</span>: '
                f'{html.escape(entry.text)}</div>'
            )
        score_html = ""
        if self.state.score is not None:
            score_html = (
                f'<div class="score"><progress max="100" value="{self.state.score}"></progress> '
                f"{self.state.score}/100 ({self.threshold}% to pass)</div>"
            )
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Code Gatekeeper Transcript</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 900px; margin: 0 auto; padding: 20px; }}
        .entry {{ padding: 8px 12px; margin: 6px 0; border-radius: 8px; }}
        .entry.user {{ background: #e8f0fe; }}
        .entry.agent {{ background: #f1f3f4; }}
        .time {{ color: #888; font-size: 0.85em; }}
    </style>
</head>
<body>
    <h1>{html.escape(render_status(self.state.status))}</h1>
    {score_html}
    {''.join(rows)}
</body>
</html>"""

    def export(self, format: ExportFormat, path: Path | None = None) -> str:
        """
        Export the session in ``format``, optionally writing it to ``path``.
        """
        if format == ExportFormat.JSON:
            content = json.dumps(self.to_dict(), indent=2)
        elif format == ExportFormat.HTML:
            content = self._export_html()
        elif format == ExportFormat.MARKDOWN:
            content = self._export_markdown()
        else:
            content = self.render_text()

        if path:
            path.write_text(content)

        return content


__all__ = [
    "ExportFormat",
    "STATUS_VIEWS",
    "SessionRenderer",
    "render_approval",
    "render_config_banner",
    "render_entry",
    "render_score_bar",
    "render_status",
    "render_topics",
    "render_transcript",
]
