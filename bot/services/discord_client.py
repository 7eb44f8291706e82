"""
Service to interface with the Discord gateway (discord.py).
"""

import os
import logging
from typing import Optional

import discord

from business.role_granter import RoleGranter, parse_guild_role_ids
from business.verification import DeliveryBlockedError
from models.verification import GrantStatus

DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")
VERIFIED_ROLE_ID = os.getenv("VERIFIED_ROLE_ID")
VERIFIED_GUILD_ROLE_IDS = os.getenv("VERIFIED_GUILD_ROLE_IDS")

GRANT_REASON = "Instagram verification"

logger = logging.getLogger(__name__)


def create_discord_client() -> discord.Client:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    intents.message_content = True
    intents.members = True
    return discord.Client(intents=intents)


async def send_direct_message(user: discord.abc.User, text: str):
    """Send a DM, raising DeliveryBlockedError if the user can't be reached."""
    try:
        await user.send(text)
    except discord.Forbidden as e:
        raise DeliveryBlockedError(f"direct messages are closed: {e}") from e
    except discord.HTTPException as e:
        raise DeliveryBlockedError(f"direct message failed: {e}") from e


class DiscordRoleGranter(RoleGranter):
    def __init__(
        self,
        client: discord.Client,
        default_role_id: Optional[str] = VERIFIED_ROLE_ID,
        guild_role_ids: Optional[dict[str, str]] = None,
    ):
        self.client = client
        self.default_role_id = default_role_id
        self.guild_role_ids = (
            guild_role_ids
            if guild_role_ids is not None
            else parse_guild_role_ids(VERIFIED_GUILD_ROLE_IDS)
        )

    def role_id_for(self, community_id: str) -> Optional[str]:
        return self.guild_role_ids.get(community_id, self.default_role_id)

    def community_ids(self) -> list[str]:
        return [str(guild.id) for guild in self.client.guilds]

    async def grant(self, requester_id: str, community_id: str) -> GrantStatus:
        guild = self.client.get_guild(int(community_id))
        if guild is None:
            return GrantStatus.NOT_A_MEMBER

        role_id = self.role_id_for(community_id)
        if not role_id:
            logger.error(f"No verified role configured for guild {guild.name}")
            return GrantStatus.FAILED

        try:
            member = guild.get_member(int(requester_id)) or await guild.fetch_member(
                int(requester_id)
            )
        except discord.NotFound:
            return GrantStatus.NOT_A_MEMBER
        except discord.Forbidden as e:
            logger.error(f"Cannot look up members on server {guild.name}: {e}")
            return GrantStatus.PERMISSION_DENIED
        except discord.HTTPException as e:
            logger.error(f"Member lookup failed on server {guild.name}: {e}")
            return GrantStatus.FAILED

        try:
            await member.add_roles(discord.Object(id=int(role_id)), reason=GRANT_REASON)
        except discord.Forbidden as e:
            logger.error(f"Cannot grant the role on server {guild.name}: {e}")
            return GrantStatus.PERMISSION_DENIED
        except discord.HTTPException as e:
            logger.error(f"Granting the role failed on server {guild.name}: {e}")
            return GrantStatus.FAILED

        return GrantStatus.GRANTED
