"""System prompt assembly for the property assistant."""
from typing import Sequence

from app.services.faq_retriever import RetrievedFAQ

FALLBACK_ANSWER = "I'm sorry, I don't have that information yet. Please contact the host."


def format_faq(faq: RetrievedFAQ) -> str:
    return f"Q: {faq.question}\nA: {faq.answer}"


def build_system_prompt(faqs: Sequence[RetrievedFAQ]) -> str:
    """
    Build the system instruction for one chat turn.

    The FAQ list may be empty; the instruction still scopes the assistant to
    the property and names the fallback answer, so every question falls back.

    Args:
        faqs: Retrieved FAQs, in the order they should appear

    Returns:
        System prompt string
    """
    faq_block = "\n\n".join(format_faq(faq) for faq in faqs)

    return f"""You are an AI assistant embedded on a short-term rental property page.
You can only answer questions based on the following FAQs.
If a question is not covered here, respond exactly:
"{FALLBACK_ANSWER}"

{faq_block}""".rstrip() + "\n"
