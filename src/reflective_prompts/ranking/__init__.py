"""
Relevance ranking module.

Public API for scoring the candidate prompt pool against a user's recent
documents with TF-IDF vectors and selecting a diverse top-K.
"""

import time
from typing import Iterable, List, Optional, Sequence, Union

import structlog

from ..config import settings
from ..errors import ValidationError, VectorizationError
from ..models.candidates import Candidate, RankingResult, ScoredCandidate
from ..models.documents import Document
from ..text.normalizer import ReductionStrategy, get_reduction_strategy, normalize
from ..version import get_current_ranking_version
from .idf import build_idf
from .question_bank import QUESTION_BANK, load_candidate_pool
from .similarity import cosine_similarity, rank, select_top_k_diverse
from .vectorizer import vectorize


logger = structlog.get_logger(__name__)

__all__ = [
    "rank_documents",
    "rank",
    "build_idf",
    "vectorize",
    "cosine_similarity",
    "select_top_k_diverse",
    "load_candidate_pool",
    "QUESTION_BANK",
]

QueryDocument = Union[Document, str]


def _document_text(doc: QueryDocument) -> str:
    if isinstance(doc, Document):
        return doc.full_text
    return doc


def rank_documents(
    query_docs: Sequence[QueryDocument],
    candidate_pool: Optional[Sequence[Candidate]] = None,
    k: Optional[int] = None,
    max_per_theme: Optional[int] = None,
    strategy: Optional[ReductionStrategy] = None,
    exclude_ids: Optional[Iterable[str]] = None,
    min_documents: Optional[int] = None,
) -> RankingResult:
    """
    Complete ranking pipeline from raw documents to a diverse top-K.

    Pipeline stages:
    1. Validate there are enough documents
    2. Normalize candidate ranking text and every query document
    3. Build one IDF map over candidates + query documents
    4. Vectorize the concatenated query and each candidate
    5. Cosine-score, sort, and select with the per-theme cap

    The IDF map is local to this call, so candidate and query vectors always
    share a term space and nothing leaks between users.

    Args:
        query_docs: The user's recent documents (Document objects or raw strings)
        candidate_pool: Candidates to rank (default: built-in question bank)
        k: Result size (default: settings.ranking_top_k)
        max_per_theme: Per-theme cap (default: settings.ranking_max_per_theme)
        strategy: Normalizer reduction strategy (default: from settings)
        exclude_ids: Candidate IDs removed from the pool before ranking
        min_documents: Minimum documents required (default: settings.ranking_min_documents)

    Returns:
        RankingResult with ordered ScoredCandidates and metadata

    Raises:
        ValidationError: Fewer documents than min_documents
        VectorizationError: The documents produced no usable terms
    """
    start_time = time.time()

    k = settings.ranking_top_k if k is None else k
    max_per_theme = settings.ranking_max_per_theme if max_per_theme is None else max_per_theme
    min_documents = settings.ranking_min_documents if min_documents is None else min_documents
    if strategy is None:
        strategy = get_reduction_strategy(settings.normalizer_strategy)
    if candidate_pool is None:
        candidate_pool = QUESTION_BANK
    if exclude_ids:
        excluded = set(exclude_ids)
        candidate_pool = [c for c in candidate_pool if c.candidate_id not in excluded]

    if len(query_docs) < min_documents:
        raise ValidationError(required=min_documents, available=len(query_docs))

    logger.info(
        "ranking_started",
        documents=len(query_docs),
        candidate_pool_size=len(candidate_pool),
        k=k,
        max_per_theme=max_per_theme,
        strategy=strategy.name,
    )

    min_length = settings.normalizer_min_term_length

    # Stage 2: Normalize
    candidate_terms = [
        normalize(c.ranking_text, strategy=strategy, min_length=min_length) for c in candidate_pool
    ]
    query_terms_per_doc = [
        normalize(_document_text(doc), strategy=strategy, min_length=min_length)
        for doc in query_docs
    ]
    query_terms: List[str] = [t for terms in query_terms_per_doc for t in terms]

    if not query_terms:
        logger.info("ranking_empty_query", documents=len(query_docs))
        raise VectorizationError(
            "Documents contain no usable terms after normalization; write a little more"
        )

    # Stage 3: Request-scoped IDF
    idf = build_idf(candidate_terms + query_terms_per_doc)

    # Stage 4: Vectors
    query_vector = vectorize(query_terms, idf)
    candidate_vectors = [
        (candidate, vectorize(terms, idf)) for candidate, terms in zip(candidate_pool, candidate_terms)
    ]

    # Stage 5: Score and select
    selected: List[ScoredCandidate] = rank(
        query_vector, candidate_vectors, k=k, max_per_theme=max_per_theme
    )

    processing_time_ms = (time.time() - start_time) * 1000

    logger.info(
        "ranking_completed",
        selected=[s.candidate_id for s in selected],
        top_score=round(selected[0].score, 4) if selected else 0.0,
        vocabulary_size=len(idf),
        processing_time_ms=round(processing_time_ms, 2),
    )

    return RankingResult(
        scored_candidates=selected,
        ranking_version=get_current_ranking_version(strategy.name),
        k=k,
        max_per_theme=max_per_theme,
        documents_analyzed=len(query_docs),
        query_term_count=len(query_terms),
        vocabulary_size=len(idf),
        candidate_pool_size=len(candidate_pool),
        processing_time_ms=processing_time_ms,
    )
