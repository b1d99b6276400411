"""Provider-agnostic prompt rendering.

Every builder returns a list of Turn objects (system turn first). Adapters
handle conversion to the provider's message format.
"""

from dataclasses import dataclass

from betareader.services.llm.types import Turn

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert fiction editor. Produce a tight factual summary (150–250 words), "
    "include POV, main characters, and 4–8 bullet beats. No speculation. "
    "Return valid JSON only."
)

SUMMARY_SCHEMA_HINT = (
    "Return JSON only for this schema: "
    '{"pov": string, "characters": string[], "beats": string[] (at least 4), '
    '"spoilers_ok": boolean, "summary": string}'
)

FIRST_CHAPTER_NOTE = (
    "This is the opening chapter of the book. Do not assume any prior events, "
    "relationships or context that the text itself does not establish."
)

REVIEW_INSTRUCTION = "Write the review now."

WIKI_SYSTEM_PROMPT = (
    "You maintain a reference wiki for a work of fiction. Only record facts the "
    "provided text supports. Return valid JSON only."
)

# Chapter text sent to wiki upkeep is truncated to keep the prompt bounded.
WIKI_EXCERPT_CHARS = 6000


@dataclass(frozen=True)
class PriorSummary:
    """A summary of an earlier chapter, as included in review context."""

    chapter_id: str
    title: str | None
    summary: str


def _chapter_heading(chapter_id: str, title: str | None) -> str:
    return f"{chapter_id} — {title}" if title else chapter_id


def render_summary_prompt(
    book_id: str,
    book_title: str,
    chapter_id: str,
    chapter_title: str | None,
    chapter_text: str,
    is_first_chapter: bool,
) -> list[Turn]:
    """Build the JSON-mode summary request for one chapter."""
    parts = [
        f"Book: {book_title} ({book_id})",
        f"Chapter: {_chapter_heading(chapter_id, chapter_title)}",
        "",
    ]
    if is_first_chapter:
        parts += [FIRST_CHAPTER_NOTE, ""]
    parts += [SUMMARY_SCHEMA_HINT, "", chapter_text]

    return [
        Turn(role="system", content=SUMMARY_SYSTEM_PROMPT),
        Turn(role="user", content="\n".join(parts)),
    ]


def format_prior_summaries(prior: list[PriorSummary]) -> str:
    """Render prior summaries as '# id — title' headed blocks."""
    return "\n\n".join(
        f"# {_chapter_heading(p.chapter_id, p.title)}\n{p.summary}" for p in prior
    )


def render_review_prompt(
    system_prompt: str,
    prior: list[PriorSummary],
    chapter_id: str,
    chapter_title: str | None,
    chapter_text: str,
) -> list[Turn]:
    """Build the review request: persona, prior context, then the new chapter."""
    user_content = (
        f"PRIOR CHAPTER SUMMARIES:\n{format_prior_summaries(prior)}\n\n"
        f"NEW CHAPTER: {_chapter_heading(chapter_id, chapter_title)}\n{chapter_text}\n\n"
        f"{REVIEW_INSTRUCTION}"
    )
    return [
        Turn(role="system", content=system_prompt),
        Turn(role="user", content=user_content),
    ]


def custom_reviewer_system_prompt(name: str, description: str) -> str:
    """System prompt for a user-authored reviewer persona."""
    return (
        f"You are {name}, a beta reader with this perspective: {description}\n"
        "Review THIS chapter in context of the prior summaries, staying in character. "
        "Be specific and reference the text; no spoilers beyond the prior summaries."
    )


def serialize_prompt(messages: list[Turn]) -> str:
    """Flatten turns into the exact text stored alongside a review."""
    return "\n\n".join(f"[{turn.role}]\n{turn.content}" for turn in messages)


def _excerpt(text: str) -> str:
    if len(text) <= WIKI_EXCERPT_CHARS:
        return text
    return text[:WIKI_EXCERPT_CHARS] + "\n[...]"


def render_wiki_profile_prompt(
    character_name: str,
    chapter_id: str,
    chapter_text: str,
    chapter_summary: str,
) -> list[Turn]:
    """Ask for a new character page built from one chapter."""
    user_content = (
        f"Create a wiki page for the character \"{character_name}\" based on chapter "
        f"{chapter_id}.\n\n"
        f"CHAPTER SUMMARY:\n{chapter_summary}\n\n"
        f"CHAPTER EXCERPT:\n{_excerpt(chapter_text)}\n\n"
        "Return JSON only for this schema: "
        '{"content": string (markdown profile: role, traits, relationships, key events), '
        '"summary": string (one sentence), "aliases": string[], "tags": string[], '
        '"is_major": boolean}'
    )
    return [
        Turn(role="system", content=WIKI_SYSTEM_PROMPT),
        Turn(role="user", content=user_content),
    ]


def render_wiki_reconcile_prompt(
    character_name: str,
    existing_content: str,
    existing_summary: str | None,
    chapter_id: str,
    chapter_text: str,
    chapter_summary: str,
) -> list[Turn]:
    """Ask the model to merge new chapter facts into an existing page."""
    user_content = (
        f"Existing wiki page for \"{character_name}\":\n"
        f"SUMMARY: {existing_summary or ''}\n"
        f"CONTENT:\n{existing_content}\n\n"
        f"New information from chapter {chapter_id}:\n"
        f"CHAPTER SUMMARY:\n{chapter_summary}\n\n"
        f"CHAPTER EXCERPT:\n{_excerpt(chapter_text)}\n\n"
        "Update the page with any new facts. If the chapter contradicts the page, "
        "describe the contradiction. Return JSON only for this schema: "
        '{"has_changes": boolean, "updated_content": string, "updated_summary": string, '
        '"contradictions": string | null, "change_summary": string}'
    )
    return [
        Turn(role="system", content=WIKI_SYSTEM_PROMPT),
        Turn(role="user", content=user_content),
    ]
