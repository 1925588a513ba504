from app.services.faq_retriever import RetrievedFAQ
from app.services.prompt import FALLBACK_ANSWER, build_system_prompt


def test_prompt_lists_faqs_in_order():
    faqs = [
        RetrievedFAQ("What time is check-in?", "Check-in is at 3pm."),
        RetrievedFAQ("Is parking available?", "- Driveway\n- Street after 6pm"),
    ]

    prompt = build_system_prompt(faqs)

    first = prompt.index("Q: What time is check-in?\nA: Check-in is at 3pm.")
    second = prompt.index("Q: Is parking available?\nA: - Driveway\n- Street after 6pm")
    assert first < second


def test_prompt_scopes_and_constrains_the_assistant():
    prompt = build_system_prompt([RetrievedFAQ("Pets?", "No pets.")])

    assert "short-term rental property" in prompt
    assert "only answer questions based on the following FAQs" in prompt
    assert f'"{FALLBACK_ANSWER}"' in prompt


def test_empty_faq_list_keeps_fallback_instruction():
    prompt = build_system_prompt([])

    assert "short-term rental property" in prompt
    assert "I'm sorry, I don't have that information yet. Please contact the host." in prompt
    assert "Q:" not in prompt
