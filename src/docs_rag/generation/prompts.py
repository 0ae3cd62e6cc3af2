"""Prompt template for retrieval-augmented answering.

The template has exactly two substitution points, rendered in this order:
the retrieved context, then the user's question.
"""

from __future__ import annotations

DEFAULT_PROMPT_TEMPLATE = """\

You are a knowledgeable support engineer for this product's documentation. \
You answer customer questions with clear and concise answers, including code \
examples where appropriate. Included below are some relevant excerpts from the \
product documentation.

{context}

Using the information above, answer the following question. Do not format the \
response as a markdown document, but as if answering a customer over a normal \
text chat interface:

{query}
"""

CONTEXT_SEPARATOR = "\n"


def build_context(contents: list[str]) -> str:
    """Join retrieved passages, nearest first, one newline between each."""
    return CONTEXT_SEPARATOR.join(contents)


def render_prompt(context: str, query: str, template: str = DEFAULT_PROMPT_TEMPLATE) -> str:
    """Substitute *context* and *query* into *template*.

    Only the two named placeholders are replaced, so braces inside the
    retrieved documents (code samples, JSON) are left untouched.
    """
    # Split on the template itself, never on substituted text, so a literal
    # "{context}" inside a query or document is not expanded.
    head, sep, tail = template.partition("{query}")
    if not sep:
        raise ValueError("prompt template is missing {query}")
    before, csep, after = head.partition("{context}")
    if not csep:
        raise ValueError("prompt template must contain {context} before {query}")
    return before + context + after + query + tail
