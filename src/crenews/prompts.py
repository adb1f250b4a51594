"""Shared formatting for the article lists embedded in classifier prompts."""

from collections.abc import Mapping, Sequence


def _joined(values: Sequence[str] | None) -> str:
    return ", ".join(values) if values else "None"


def format_articles(articles: Sequence[Mapping], include_context: bool = False) -> str:
    """
    Render a numbered article list (0-based, matching output positions).

    With include_context, each entry also shows the article's current
    counties/cities and the reviewer's reason, for re-runs of a
    categorization that was flagged as wrong.
    """
    blocks = []
    for index, article in enumerate(articles):
        lines = [
            f"{index}. Title: {article.get('title') or 'No title'}",
            f"   Description: {article.get('description') or 'No description'}",
        ]
        if include_context:
            lines.append(f"   Previous Counties: {_joined(article.get('current_counties'))}")
            lines.append(f"   Previous Cities: {_joined(article.get('current_cities'))}")
            lines.append(f"   Validator Reason: {article.get('reason') or 'None'}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)
