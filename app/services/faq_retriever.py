"""FAQ retrieval: pick the host FAQs most relevant to a guest query.

Handles:
- Corpus loading for a property
- Weighted question/answer similarity scoring
- Threshold filtering and top-N selection
- Diagnostic logging of each selection
"""
from dataclasses import dataclass
import json
import logging
import time

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import RetrievalDegradation
from app.models.faq import PropertyFAQ
from app.services.keywords import similarity

logger = logging.getLogger(__name__)

QUESTION_WEIGHT = 0.6
ANSWER_WEIGHT = 0.4
RELEVANCE_THRESHOLD = 0.1
MAX_RESULTS = 3


@dataclass(frozen=True)
class RetrievedFAQ:
    """A question/answer pair handed to the prompt assembler."""
    question: str
    answer: str


@dataclass(frozen=True)
class ScoredFAQ:
    question: str
    answer: str
    score: float


def list_faqs(session: Session, property_id: str) -> list[PropertyFAQ]:
    """
    Load all FAQs for a property in authoring order.

    Raises:
        RetrievalDegradation: If the corpus cannot be read
    """
    statement = select(PropertyFAQ).where(
        PropertyFAQ.property_id == property_id,
    ).order_by(PropertyFAQ.created_at, PropertyFAQ.id)

    try:
        return list(session.exec(statement).all())
    except SQLAlchemyError as e:
        session.rollback()
        raise RetrievalDegradation(f"Failed to load FAQs for property {property_id}") from e


def score_faq(query: str, question: str, answer: str) -> float:
    """Weighted similarity; the question counts more since it reads like a query."""
    question_score = similarity(query, question)
    answer_score = similarity(query, answer)
    return QUESTION_WEIGHT * question_score + ANSWER_WEIGHT * answer_score


class FAQRetriever:
    """Selects up to three FAQs relevant to a guest query."""

    def __init__(self, max_results: int = MAX_RESULTS, threshold: float = RELEVANCE_THRESHOLD):
        self.max_results = max_results
        self.threshold = threshold

    def retrieve(self, session: Session, property_id: str, query: str) -> list[RetrievedFAQ]:
        """
        Return the most relevant FAQs for the query, best first.

        Never raises: a corpus read failure is logged and treated as an
        empty corpus so the turn can still proceed with the fallback prompt.

        Args:
            session: Database session
            property_id: Property whose FAQs are searched
            query: Guest question text

        Returns:
            Between 0 and max_results FAQs, each scoring above the threshold
        """
        start = time.perf_counter()

        try:
            faqs = list_faqs(session, property_id)
        except RetrievalDegradation as e:
            logger.warning(f"{e}: {e.__cause__}; continuing without FAQs")
            return []

        if not faqs:
            logger.info(f"No FAQs found for property: {property_id}")
            return []

        scored = [
            ScoredFAQ(
                question=faq.question,
                answer=faq.answer,
                score=score_faq(query, faq.question, faq.answer),
            )
            for faq in faqs
        ]

        # sorted() is stable, so equal scores keep corpus order
        scored = sorted(scored, key=lambda item: item.score, reverse=True)

        selected = [
            RetrievedFAQ(question=item.question, answer=item.answer)
            for item in scored
            if item.score > self.threshold
        ][: self.max_results]

        elapsed_ms = (time.perf_counter() - start) * 1000
        self._log_selection(query, scored, selected, elapsed_ms)

        return selected

    def _log_selection(
        self,
        query: str,
        scored: list[ScoredFAQ],
        selected: list[RetrievedFAQ],
        elapsed_ms: float,
    ) -> None:
        record = {
            "query": query,
            "total_faqs": len(scored),
            "selected_count": len(selected),
            "processing_time_ms": round(elapsed_ms, 3),
            "top_scores": [
                {"question": item.question, "score": round(item.score, 4)}
                for item in scored[:3]
            ],
        }
        logger.info("FAQ selection: %s", json.dumps(record))
