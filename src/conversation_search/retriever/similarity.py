"""
Cosine similarity and the ranking contract.

'rank_by_similarity' is the reference implementation of the storage ranking
query: similarity is '1 - cosine_distance', only scores strictly greater than
the threshold survive, results are ordered by similarity descending with
'(created_at, id)' as the ascending tie-break, and the limit is applied after
filtering. The in-memory backend uses it directly; the PostgreSQL backend
expresses the same contract in SQL.
"""

from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from conversation_search.conversation_database.data_models.message import MessageMatch, MessageRecord


def cosine_similarity(query: Sequence[float] | NDArray[np.float64], matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Cosine similarity between 'query' (shape '(D,)') and every row of 'matrix' (shape '(n, D)').

    Rows or queries with zero norm have no direction; their similarity is 0.0
    instead of NaN.
    """
    query_vector = np.asarray(query, dtype=np.float64)
    rows = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
    if rows.shape[1] != query_vector.shape[0]:
        raise ValueError(f"Dimension mismatch: query has {query_vector.shape[0]} values, rows have {rows.shape[1]}")

    norms = np.linalg.norm(rows, axis=1) * np.linalg.norm(query_vector)
    dots = rows @ query_vector
    similarities = np.zeros(rows.shape[0], dtype=np.float64)
    np.divide(dots, norms, out=similarities, where=norms > 0)
    return similarities


def rank_by_similarity(
    query_embedding: Sequence[float],
    records: Sequence[MessageRecord],
    match_threshold: float,
    match_count: int,
) -> list[MessageMatch]:
    """Filter, order and truncate 'records' by their similarity to 'query_embedding'."""
    candidates = [record for record in records if record.embedding is not None]
    if not candidates or match_count <= 0:
        return []

    matrix = np.array([record.embedding for record in candidates], dtype=np.float64)
    scores = cosine_similarity(query_embedding, matrix).tolist()

    qualifying = [(record, score) for record, score in zip(candidates, scores) if score > match_threshold]
    qualifying.sort(key=lambda pair: (-pair[1], pair[0].created_at, pair[0].id))

    return [
        MessageMatch(
            id=record.id,
            conversation_id=record.conversation_id,
            role=record.role,
            content=record.content,
            created_at=record.created_at,
            similarity=score,
        )
        for record, score in qualifying[:match_count]
    ]
