import logging
from abc import ABC, abstractmethod

from models.verification import GrantResult, GrantStatus

logger = logging.getLogger(__name__)


class RoleGranter(ABC):
    """Applies the verified role to a requester in one guild at a time."""

    @abstractmethod
    def community_ids(self) -> list[str]:
        """Ids of every guild the role could be granted in."""

    @abstractmethod
    async def grant(self, requester_id: str, community_id: str) -> GrantStatus:
        pass


async def grant_everywhere(granter: RoleGranter, requester_id: str) -> list[GrantResult]:
    """Try every guild. A failure in one guild does not stop the others."""
    results = []
    for community_id in granter.community_ids():
        try:
            status = await granter.grant(requester_id, community_id)
        except Exception as e:
            logger.error(
                f"Failed to grant role to {requester_id} in guild {community_id}: {e}"
            )
            status = GrantStatus.FAILED
        results.append(GrantResult(community_id=community_id, status=status))
    return results


def parse_guild_role_ids(value: str | None) -> dict[str, str]:
    """Parse "guild_id:role_id,guild_id:role_id" into a mapping."""
    mapping = {}
    if not value:
        return mapping
    for pair in value.split(","):
        pair = pair.strip()
        if not pair:
            continue
        guild_id, sep, role_id = pair.partition(":")
        if not sep or not guild_id.strip() or not role_id.strip():
            raise ValueError(f"Invalid guild role mapping: {pair!r}")
        mapping[guild_id.strip()] = role_id.strip()
    return mapping
