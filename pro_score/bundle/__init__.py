"""Bundle access: response grouping and the in-bundle definition index."""

from pro_score.bundle.grouper import (
    ResponseGrouper,
    bundle_entries,
    conditions_from_bundle,
    resources_of_type,
    sort_newest_first,
    to_millis,
)
from pro_score.bundle.index import (
    DefinitionLoader,
    QuestionnaireIndex,
    build_definition,
    make_bundle_loader,
)
from pro_score.bundle.observations import (
    observation_link_id,
    observations_to_response,
    observations_to_responses,
    responses_from_observations,
)

__all__ = [
    "DefinitionLoader",
    "QuestionnaireIndex",
    "ResponseGrouper",
    "build_definition",
    "bundle_entries",
    "conditions_from_bundle",
    "make_bundle_loader",
    "observation_link_id",
    "observations_to_response",
    "observations_to_responses",
    "resources_of_type",
    "responses_from_observations",
    "sort_newest_first",
    "to_millis",
]
