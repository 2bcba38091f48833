"""Markdown rendering of question prompts and options for the participant-facing API."""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from chapter_quiz.core.models import Language

EMPTY_PROMPT_HTML = "<p><em>No content provided.</em></p>"


@dataclass(slots=True)
class PromptRenderer:
    """Converts stored markdown prompts into HTML fragments.

    Raw HTML in question text is escaped unless ``enable_html`` is set. Tamil
    prompts are wrapped in a ``lang`` container so clients can pick a font.
    """

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_prompt(self, markdown_text: str, language: Language = Language.ENGLISH) -> str:
        text = markdown_text.strip()
        if not text:
            return EMPTY_PROMPT_HTML
        html = self._markdown.render(text)
        if language is Language.ENGLISH:
            return html
        return f'<div lang="{language.value}">{html}</div>'

    def render_options(self, options: list[str]) -> list[str]:
        """Options are single lines, so they render inline without a paragraph wrapper."""
        return [self._markdown.renderInline(option.strip()) for option in options]


renderer = PromptRenderer()
