"""Response grouping for resource bundles.

Bundles arrive either as a FHIR ``Bundle`` (``{"entry": [{"resource": ...}]}``)
or as a bare list of resources, some of which may still be wrapped in
``{"resource": ...}`` entries. ``bundle_entries`` is the single place those
shapes are normalized; everything downstream works on plain resources.
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from pro_score.matching import questionnaire_ref_matches
from pro_score.registry.models import ScoringConfig

logger = logging.getLogger(__name__)

QUESTIONNAIRE_RESPONSE = "QuestionnaireResponse"
QUESTIONNAIRE = "Questionnaire"
CONDITION = "Condition"

LARGE_BUNDLE_WARNING = 1000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PARTIAL_DATE_FORMATS = ("%Y-%m", "%Y")
# fromisoformat only takes 3 or 6 fractional digits before Python 3.11
_FRACTION = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def bundle_entries(bundle: Any) -> list[dict[str, Any]]:
    """Extract resources from a bundle of any accepted shape.

    Args:
        bundle: A FHIR Bundle dict, a list of ``{"resource": ...}`` wrappers
            or bare resources, or a single resource.

    Returns:
        A new list of resource dicts carrying a ``resourceType``.
    """
    if bundle is None:
        return []
    if isinstance(bundle, dict):
        if bundle.get("resourceType") == "Bundle" or "entry" in bundle:
            entries = bundle.get("entry") or []
        else:
            entries = [bundle]
    elif isinstance(bundle, (list, tuple)):
        entries = bundle
    else:
        return []

    resources = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        resource = entry.get("resource") if isinstance(entry.get("resource"), dict) else entry
        if resource.get("resourceType"):
            resources.append(resource)

    if len(resources) > LARGE_BUNDLE_WARNING:
        logger.warning("Processing large bundle with %d entries", len(resources))
    return resources


def resources_of_type(bundle: Any, resource_type: str) -> list[dict[str, Any]]:
    """Get all resources of one type from a bundle (case-insensitive type)."""
    wanted = resource_type.lower()
    return [r for r in bundle_entries(bundle) if str(r.get("resourceType", "")).lower() == wanted]


def conditions_from_bundle(bundle: Any) -> list[dict[str, Any]]:
    """Get the Condition resources of a bundle."""
    return resources_of_type(bundle, CONDITION)


def to_millis(value: Any) -> int:
    """Convert an ISO date/dateTime string to epoch milliseconds.

    Absent or unparsable values return 0 so they sort as oldest. Naive
    timestamps are treated as UTC.
    """
    if not isinstance(value, str) or not value.strip():
        return 0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: f"{m.group(1)}.{(m.group(2) + '00000')[:6]}", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
        for fmt in _PARTIAL_DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def authored_of(resource: dict[str, Any] | None) -> str | None:
    """The ``authored`` timestamp of a response."""
    return resource.get("authored") if isinstance(resource, dict) else None


def last_updated_of(resource: dict[str, Any] | None) -> str | None:
    """The ``meta.lastUpdated`` timestamp of a resource."""
    if not isinstance(resource, dict):
        return None
    meta = resource.get("meta")
    return meta.get("lastUpdated") if isinstance(meta, dict) else None


def recency_key(authored: Any, last_updated: Any) -> tuple[int, int]:
    """Sort key: authored first, lastUpdated when authored is absent and as tiebreak."""
    updated = to_millis(last_updated)
    return (to_millis(authored) or updated, updated)


def sort_newest_first(responses: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sort responses newest-first.

    The sort is stable: responses with equal keys keep their input order.
    """
    return sorted(
        responses,
        key=lambda r: recency_key(authored_of(r), last_updated_of(r)),
        reverse=True,
    )


def is_completed(response: dict[str, Any]) -> bool:
    return response.get("status") == "completed"


def _candidate_refs(response: dict[str, Any]) -> list[str]:
    """Every reference a response may carry for its questionnaire."""
    refs = []
    if response.get("questionnaire"):
        refs.append(str(response["questionnaire"]))
    # Some exports move the reference into the primitive's extension
    element = response.get("_questionnaire")
    if isinstance(element, dict):
        for ext in element.get("extension") or []:
            if not isinstance(ext, dict):
                continue
            for field in ("valueCanonical", "valueString", "valueUri"):
                if isinstance(ext.get(field), str):
                    refs.append(ext[field])
    return refs


class ResponseGrouper:
    """Groups QuestionnaireResponses from a bundle by questionnaire reference."""

    def responses(self, bundle: Any, completed_only: bool = True) -> list[dict[str, Any]]:
        """All QuestionnaireResponses of a bundle, optionally completed only."""
        responses = resources_of_type(bundle, QUESTIONNAIRE_RESPONSE)
        if completed_only:
            responses = [r for r in responses if is_completed(r)]
        return responses

    def group(self, bundle: Any, completed_only: bool = True) -> dict[str, list[dict[str, Any]]]:
        """Group responses by their literal ``questionnaire`` reference.

        Responses without a reference are dropped. Each group is sorted
        newest-first.

        Args:
            bundle: Bundle in any accepted shape.
            completed_only: Drop responses whose status is not "completed".

        Returns:
            Mapping of reference string to responses, in first-seen order.
        """
        groups: dict[str, list[dict[str, Any]]] = {}
        for response in self.responses(bundle, completed_only):
            ref = str(response.get("questionnaire") or "").strip()
            if not ref:
                continue
            groups.setdefault(ref, []).append(response)
        return {ref: sort_newest_first(items) for ref, items in groups.items()}

    def for_questionnaire(
        self,
        bundle: Any,
        config: ScoringConfig,
        completed_only: bool = True,
    ) -> list[dict[str, Any]]:
        """Get the responses belonging to one configured questionnaire.

        Group keys are matched against the config first. When no key
        matches, every response is scanned for any reference that does.

        Args:
            bundle: Bundle in any accepted shape.
            config: The instrument config to match against.
            completed_only: Drop responses whose status is not "completed".

        Returns:
            Matching responses, newest-first.
        """
        matched: list[dict[str, Any]] = []
        for ref, responses in self.group(bundle, completed_only).items():
            if questionnaire_ref_matches(ref, config):
                matched.extend(responses)

        if not matched:
            for response in self.responses(bundle, completed_only):
                if any(questionnaire_ref_matches(ref, config) for ref in _candidate_refs(response)):
                    matched.append(response)

        return sort_newest_first(matched)

    def hosts_for(
        self,
        bundle: Any,
        host_ids: Iterable[str],
        completed_only: bool = True,
    ) -> list[dict[str, Any]]:
        """Get responses whose group reference matches any host id."""
        host_configs = [
            ScoringConfig(key=host_id, questionnaire_id=host_id, match_mode="fuzzy")
            for host_id in host_ids
        ]
        hosts: list[dict[str, Any]] = []
        for ref, responses in self.group(bundle, completed_only).items():
            if any(questionnaire_ref_matches(ref, host) for host in host_configs):
                hosts.extend(responses)
        return sort_newest_first(hosts)
