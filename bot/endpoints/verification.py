"""
Verification endpoints.
"""

import asyncio

from sanic import Blueprint
from sanic.response import json

from models.verification import VerifiedUsersApiResponse

verification_blueprint = Blueprint(
    "verification", url_prefix="/verification", version=1
)


@verification_blueprint.get("/<community_id:str>")
async def get_verified_users(request, community_id: str):
    """
    Method: GET

    Route: /verification/<community_id:str>

    Description: List the verified users of a Discord server.
    """
    try:
        records = await asyncio.to_thread(
            request.app.ctx.ledger.list_by_community, community_id
        )
    except Exception as e:
        return json({"message": str(e)}, status=500)

    response = VerifiedUsersApiResponse(community_id=community_id, users=records)
    return json({"data": response.model_dump(mode="json")})
