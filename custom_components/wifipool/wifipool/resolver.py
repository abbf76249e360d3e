"""Pool domain and device resolution.

`groups/accessible` returns loosely structured JSON in which the pool domain
identifier sits among device, user, and creator identifiers of the same
shape. The resolver ranks candidate UUIDs, excludes the ones known not to be
a domain, and accepts the first candidate whose group info lists IOs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Final, cast

from .client import WifiPoolClient
from .exceptions import (
    DeviceNotFoundError,
    DomainResolutionError,
    NoGroupsError,
    WifiPoolError,
)
from .tree import collect_uuids, dedupe, dig, is_uuid, values_for_keys

_LOGGER = logging.getLogger(__name__)

PRIORITY_DOMAIN_KEYS: Final[tuple[str, ...]] = (
    "mobile_group_uuid",
    "mobile_group_id",
    "domainId",
    "groupId",
)


@dataclass(frozen=True)
class ResolvedDomain:
    """Outcome of domain resolution."""

    domain: str
    device_uuid: str
    group_info: dict[str, Any]

    @property
    def channels(self) -> list[str]:
        """Return the raw IO ids listed by group info."""
        return io_ids(self.group_info)


def group_io(info: Any) -> list[Any]:
    """Return the `mobile_group_data.io` array of a group info payload."""
    io_any: Any = dig(info, "mobile_group_data", "io")
    if io_any is None:
        io_any = dig(info, "io")
    return cast(list[Any], io_any) if isinstance(io_any, list) else []


def io_ids(info: Any) -> list[str]:
    """Return IO ids from group info, preserving order."""
    out: list[str] = []
    for item in group_io(info):
        if isinstance(item, dict):
            io_id: Any = cast(dict[str, Any], item).get("id")
            if isinstance(io_id, str) and io_id:
                out.append(io_id)
        elif isinstance(item, str) and item:
            out.append(item)
    return out


def first_device_uuid(info: Any) -> str | None:
    """Return `devices[0].id` from group info.

    Only the first device is used; one controller per domain is assumed.
    """
    for path in (("mobile_group_data", "devices", 0, "id"), ("devices", 0, "id")):
        value: Any = dig(info, *path)
        if isinstance(value, str) and value:
            return value
    return None


def excluded_uuids(groups: list[Any], *, login_user_id: str | None) -> set[str]:
    """Return identifiers that can never be a domain.

    These are every `devices[].id` at any depth, every
    `mobile_group_creator`, and the logged-in user's own id.
    """
    excluded: set[str] = set()
    for devices in values_for_keys(groups, ("devices",)):
        if not isinstance(devices, list):
            continue
        for device in cast(list[Any], devices):
            device_id: Any = dig(device, "id")
            if is_uuid(device_id):
                excluded.add(str(device_id).strip())
    for creator in values_for_keys(groups, ("mobile_group_creator",)):
        if is_uuid(creator):
            excluded.add(str(creator).strip())
    if login_user_id and is_uuid(login_user_id):
        excluded.add(login_user_id.strip())
    return excluded


def domain_candidates(groups: Any, *, login_user_id: str | None = None) -> list[str]:
    """Rank domain candidates from a `groups/accessible` payload.

    Values under well-known keys on each group come first, followed by every
    other UUID in the payload. Excluded identifiers are removed from both.

    Raises:
        NoGroupsError: If the payload is not a non-empty list.
    """
    if not isinstance(groups, list) or not groups:
        raise NoGroupsError("No groups accessible for this account")
    group_list = cast(list[Any], groups)

    excluded = excluded_uuids(group_list, login_user_id=login_user_id)

    priority: list[str] = []
    for group in group_list:
        if not isinstance(group, dict):
            continue
        for key in PRIORITY_DOMAIN_KEYS:
            value: Any = cast(dict[str, Any], group).get(key)
            if is_uuid(value):
                priority.append(str(value).strip())

    everything = collect_uuids(group_list)
    return [c for c in dedupe([*priority, *everything]) if c not in excluded]


async def async_resolve_domain(
    client: WifiPoolClient, *, login_user_id: str | None = None
) -> ResolvedDomain:
    """Find the pool domain and its first device.

    Args:
        client: Logged-in API client.
        login_user_id: The account's own id, excluded from candidates.

    Returns:
        ResolvedDomain with the accepted group info.

    Raises:
        NoGroupsError: If the account has no groups.
        DomainResolutionError: If no candidate has IOs.
        DeviceNotFoundError: If the accepted domain has no device.
    """
    groups = await client.async_list_accessible_groups()
    _LOGGER.debug(
        "groups/accessible returned %s item(s)",
        len(groups) if isinstance(groups, list) else 0,
    )
    candidates = domain_candidates(groups, login_user_id=login_user_id)
    if not candidates:
        raise DomainResolutionError(
            "Could not find any domain candidates in groups/accessible"
        )
    _LOGGER.debug("Domain candidates: %s", ", ".join(candidates))

    for candidate in candidates:
        try:
            info = await client.async_get_group_info(candidate)
        except WifiPoolError as err:
            _LOGGER.debug("Candidate %s rejected: %s", candidate, err)
            continue
        io_count = len(group_io(info))
        if io_count == 0:
            _LOGGER.debug("Candidate %s rejected: no io array", candidate)
            continue

        _LOGGER.info("Domain resolved: %s (io=%s)", candidate, io_count)
        device_uuid = first_device_uuid(info)
        if not device_uuid:
            raise DeviceNotFoundError(
                f"Could not determine device UUID for domain {candidate}"
            )
        return ResolvedDomain(domain=candidate, device_uuid=device_uuid, group_info=info)

    raise DomainResolutionError("All domain candidates were rejected by groups/getInfo")
