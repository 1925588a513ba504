import logging

import pytest
from sqlalchemy.exc import OperationalError

from app.services import faq_retriever as retriever_module
from app.services.faq_retriever import FAQRetriever, RetrievedFAQ, score_faq
from tests.conftest import CHECK_IN_FAQ, PARKING_FAQ, PROPERTY_ID


@pytest.fixture
def retriever():
    return FAQRetriever()


def test_empty_corpus_returns_nothing_without_scoring(session, retriever, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("scored an empty corpus")

    monkeypatch.setattr(retriever_module, "score_faq", fail)

    assert retriever.retrieve(session, PROPERTY_ID, "What time can I check in") == []


def test_check_in_query_selects_check_in_faq(session, retriever, add_faqs):
    add_faqs(CHECK_IN_FAQ, PARKING_FAQ)

    results = retriever.retrieve(session, PROPERTY_ID, "What time can I check in")

    assert results[0] == RetrievedFAQ(*CHECK_IN_FAQ)
    assert RetrievedFAQ(*PARKING_FAQ) not in results


def test_unrelated_query_returns_nothing(session, retriever, add_faqs):
    add_faqs(CHECK_IN_FAQ, PARKING_FAQ)

    assert retriever.retrieve(session, PROPERTY_ID, "Do you have a pool") == []


def test_only_faqs_of_the_requested_property(session, retriever, add_faqs):
    add_faqs(CHECK_IN_FAQ, property_id="other-prop")

    assert retriever.retrieve(session, PROPERTY_ID, "What time can I check in") == []


def test_returns_at_most_three(session, retriever, add_faqs):
    add_faqs(
        ("Where is the parking?", "Parking is behind the house."),
        ("Is street parking allowed?", "Street parking is free after 6pm."),
        ("Can I park a trailer?", "Trailer parking is on the gravel pad."),
        ("Is there parking for two cars?", "Yes, parking fits two cars."),
        ("Is garage parking covered?", "Garage parking is covered."),
    )

    results = retriever.retrieve(session, PROPERTY_ID, "parking")

    assert len(results) == 3


def test_every_result_is_above_threshold(session, retriever, add_faqs):
    pairs = [
        CHECK_IN_FAQ,
        PARKING_FAQ,
        ("What is the wifi password?", "The wifi password is on the fridge."),
        ("When is checkout?", "Checkout time is 11am, leave keys inside."),
    ]
    add_faqs(*pairs)
    query = "what time is checkout and where are the keys"

    results = retriever.retrieve(session, PROPERTY_ID, query)

    assert results
    for faq in results:
        assert score_faq(query, faq.question, faq.answer) > retriever_module.RELEVANCE_THRESHOLD


def test_results_ranked_by_combined_score(session, retriever, add_faqs):
    add_faqs(
        ("Is there a washer?", "Laundry room has a washer and dryer."),
        ("Laundry detergent?", "Detergent is under the sink."),
    )
    query = "is there a washer and dryer"

    results = retriever.retrieve(session, PROPERTY_ID, query)

    scores = [score_faq(query, faq.question, faq.answer) for faq in results]
    assert scores == sorted(scores, reverse=True)
    assert results[0].question == "Is there a washer?"


def test_ties_keep_corpus_order(session, retriever, add_faqs):
    add_faqs(
        ("Pets allowed?", "Ask first."),
        ("Pets fee?", "Ask first."),
    )

    results = retriever.retrieve(session, PROPERTY_ID, "pets")

    assert [faq.question for faq in results] == ["Pets allowed?", "Pets fee?"]


def test_question_weighs_more_than_answer():
    question_match = score_faq("pool hours", "Pool hours?", "Open daily.")
    answer_match = score_faq("pool hours", "Open daily?", "Pool hours.")

    assert question_match > answer_match


def test_storage_error_degrades_to_empty(session, retriever, add_faqs, monkeypatch, caplog):
    add_faqs(CHECK_IN_FAQ)

    def broken_exec(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(session, "exec", broken_exec)

    with caplog.at_level(logging.WARNING, logger="app.services.faq_retriever"):
        results = retriever.retrieve(session, PROPERTY_ID, "What time can I check in")

    assert results == []
    assert "continuing without FAQs" in caplog.text


def test_selection_is_logged(session, retriever, add_faqs, caplog):
    add_faqs(CHECK_IN_FAQ, PARKING_FAQ)

    with caplog.at_level(logging.INFO, logger="app.services.faq_retriever"):
        retriever.retrieve(session, PROPERTY_ID, "What time can I check in")

    record = next(r for r in caplog.records if r.getMessage().startswith("FAQ selection"))
    message = record.getMessage()
    assert '"total_faqs": 2' in message
    assert '"selected_count": 1' in message
