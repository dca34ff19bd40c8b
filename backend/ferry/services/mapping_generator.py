"""
Mapping generation.

Detects the provider services referenced by monitors and adds
placeholder mappings (team left empty) for the ones the config does not
know yet, so that users only have to fill in team names.
"""

from typing import Iterable, List, NamedTuple, Sequence

from ferry.models.mapping import ServiceMapping
from ferry.models.monitor import Monitor
from ferry.utils.logger import get_module_logger
from ferry.utils.markers import Provider, find_provider_markers

logger = get_module_logger(__name__)


class MergeResult(NamedTuple):
    mappings: List[ServiceMapping]
    detected: List[str]
    added: List[str]


def detect_services(monitors: Iterable[Monitor], provider: Provider) -> List[str]:
    """Distinct provider services mentioned by ``monitors``, sorted."""
    services = set()
    for monitor in monitors:
        services.update(find_provider_markers(monitor.message, provider))
    return sorted(services)


def merge_detected_services(
    existing: Sequence[ServiceMapping],
    detected: Iterable[str],
    provider: Provider,
) -> MergeResult:
    """
    Append a ``{service, team: null}`` entry for every detected service
    that has no mapping yet.

    Existing entries are kept unchanged and in their original order,
    including entries keyed for the other provider.
    """
    provider = Provider(provider)
    detected = list(detected)
    known = {mapping.service_key(provider) for mapping in existing}

    mappings = list(existing)
    added: List[str] = []
    for service in detected:
        if service in known:
            continue
        key = "opsgenie_service" if provider is Provider.OPSGENIE else "pagerduty_service"
        mappings.append(ServiceMapping(**{key: service, "incidentio_team": None}))
        known.add(service)
        added.append(service)

    logger.info(f"Detected {len(detected)} {provider.display_name} services, {len(added)} new")
    return MergeResult(mappings=mappings, detected=detected, added=added)
