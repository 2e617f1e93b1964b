"""
Schema Mapper — IndexSpec ⇄ Azure AI Search index definition

Pure translation, no I/O.

Every index has the same four fields:

  id        Edm.String                 key, filterable
  vector    Collection(Edm.Single)     dimension-tagged, bound to the HNSW profile
  metadata  Edm.String                 opaque JSON blob, not searchable / filterable
  text      Edm.String                 searchable (promoted out of metadata)

HNSW parameters favour recall over latency: a sparse graph (m=4) built and
searched with wide candidate lists (efConstruction=400, efSearch=500).
"""

from __future__ import annotations

import logging

from azure.search.documents.indexes.models import (
    HnswAlgorithmConfiguration,
    HnswParameters,
    SearchableField,
    SearchField,
    SearchFieldDataType,
    SearchIndex,
    SimpleField,
    VectorSearch,
    VectorSearchAlgorithmMetric,
    VectorSearchProfile,
)

from ragsearch.vectorstore.base import DistanceMetric, IndexSpec

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Field / configuration names
# ---------------------------------------------------------------------------

ID_FIELD       = "id"
VECTOR_FIELD   = "vector"
METADATA_FIELD = "metadata"
TEXT_FIELD     = "text"

HNSW_ALGORITHM_NAME = "hnsw-algorithm"
VECTOR_PROFILE_NAME = "vector-profile"

HNSW_M               = 4
HNSW_EF_CONSTRUCTION = 400
HNSW_EF_SEARCH       = 500

_TO_AZURE_METRIC: dict[DistanceMetric, VectorSearchAlgorithmMetric] = {
    DistanceMetric.COSINE:      VectorSearchAlgorithmMetric.COSINE,
    DistanceMetric.EUCLIDEAN:   VectorSearchAlgorithmMetric.EUCLIDEAN,
    DistanceMetric.DOT_PRODUCT: VectorSearchAlgorithmMetric.DOT_PRODUCT,
}

# Keyed by lower-cased wire value ("dotProduct" → "dotproduct")
_FROM_AZURE_METRIC: dict[str, DistanceMetric] = {
    str(azure.value).lower(): ours for ours, azure in _TO_AZURE_METRIC.items()
}


def to_backend_schema(spec: IndexSpec) -> SearchIndex:
    """Build the Azure index definition for an IndexSpec."""
    vector_search = VectorSearch(
        algorithms=[
            HnswAlgorithmConfiguration(
                name=HNSW_ALGORITHM_NAME,
                parameters=HnswParameters(
                    m=HNSW_M,
                    ef_construction=HNSW_EF_CONSTRUCTION,
                    ef_search=HNSW_EF_SEARCH,
                    metric=_TO_AZURE_METRIC[spec.metric],
                ),
            )
        ],
        profiles=[
            VectorSearchProfile(
                name=VECTOR_PROFILE_NAME,
                algorithm_configuration_name=HNSW_ALGORITHM_NAME,
            )
        ],
    )

    fields = [
        SimpleField(name=ID_FIELD, type=SearchFieldDataType.String, key=True, filterable=True),
        SearchField(
            name=VECTOR_FIELD,
            type=SearchFieldDataType.Collection(SearchFieldDataType.Single),
            searchable=True,
            vector_search_dimensions=spec.dimension,
            vector_search_profile_name=VECTOR_PROFILE_NAME,
        ),
        SimpleField(name=METADATA_FIELD, type=SearchFieldDataType.String, filterable=False),
        SearchableField(name=TEXT_FIELD, type=SearchFieldDataType.String, filterable=False),
    ]

    return SearchIndex(name=spec.name, fields=fields, vector_search=vector_search)


def from_backend_schema(index: SearchIndex) -> tuple[int, DistanceMetric]:
    """
    Read (dimension, metric) back off an Azure index definition.

    dimension : `vector_search_dimensions` of the field named "vector"
                (0 if the field is missing)
    metric    : metric of the FIRST configured algorithm; cosine when the
                algorithm has no parameters or an unrecognised metric
    """
    dimension = 0
    for f in index.fields or []:
        if f.name == VECTOR_FIELD:
            dimension = getattr(f, "vector_search_dimensions", None) or 0
            break

    metric = DistanceMetric.COSINE
    algorithms = index.vector_search.algorithms if index.vector_search else None
    if algorithms:
        params = getattr(algorithms[0], "parameters", None)
        raw = getattr(params, "metric", None) if params is not None else None
        if raw is not None:
            key = str(getattr(raw, "value", raw)).lower()
            if key in _FROM_AZURE_METRIC:
                metric = _FROM_AZURE_METRIC[key]
            else:
                logger.warning(
                    "Schema | index=%s unrecognised metric=%s, reporting cosine",
                    index.name, raw,
                )

    return dimension, metric
