"""Tests for prompt rendering."""

from betareader.services.llm import Turn
from betareader.services.llm.prompt import (
    FIRST_CHAPTER_NOTE,
    SUMMARY_SYSTEM_PROMPT,
    WIKI_EXCERPT_CHARS,
    PriorSummary,
    format_prior_summaries,
    render_review_prompt,
    render_summary_prompt,
    render_wiki_profile_prompt,
    serialize_prompt,
)


def _summary_prompt(is_first: bool) -> list[Turn]:
    return render_summary_prompt(
        book_id="b1",
        book_title="The Map",
        chapter_id="c1",
        chapter_title="Arrival",
        chapter_text="Alice arrives.",
        is_first_chapter=is_first,
    )


class TestSummaryPrompt:
    def test_system_turn_first(self):
        messages = _summary_prompt(is_first=False)

        assert [m.role for m in messages] == ["system", "user"]
        assert messages[0].content == SUMMARY_SYSTEM_PROMPT
        assert messages[1].content.endswith("Alice arrives.")
        assert "Chapter: c1 — Arrival" in messages[1].content

    def test_first_chapter_note(self):
        assert FIRST_CHAPTER_NOTE in _summary_prompt(is_first=True)[1].content
        assert FIRST_CHAPTER_NOTE not in _summary_prompt(is_first=False)[1].content


class TestReviewPrompt:
    def test_prior_summaries_are_headed_blocks(self):
        prior = [
            PriorSummary(chapter_id="c1", title="Arrival", summary="Alice arrives."),
            PriorSummary(chapter_id="c2", title=None, summary="Bob leaves."),
        ]

        assert format_prior_summaries(prior) == (
            "# c1 — Arrival\nAlice arrives.\n\n# c2\nBob leaves."
        )

    def test_review_prompt_layout(self):
        messages = render_review_prompt("Persona.", [], "c3", None, "Text of c3.")

        assert messages[0] == Turn(role="system", content="Persona.")
        user = messages[1].content
        assert user.startswith("PRIOR CHAPTER SUMMARIES:\n")
        assert "NEW CHAPTER: c3\nText of c3." in user

    def test_serialize_prompt(self):
        messages = [Turn(role="system", content="S"), Turn(role="user", content="U")]

        assert serialize_prompt(messages) == "[system]\nS\n\n[user]\nU"


class TestWikiPrompt:
    def test_long_chapters_are_truncated(self):
        text = "x" * (WIKI_EXCERPT_CHARS + 500)

        messages = render_wiki_profile_prompt("Alice", "c1", text, "Summary.")

        user = messages[1].content
        assert user.startswith('Create a wiki page for the character "Alice"')
        assert "x" * WIKI_EXCERPT_CHARS + "\n[...]" in user
        assert "x" * (WIKI_EXCERPT_CHARS + 1) not in user
