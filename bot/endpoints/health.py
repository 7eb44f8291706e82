"""
Health check endpoints.
"""

from sanic import Blueprint
from sanic.response import json, text

from services.postgres import postgres_health_check
from services.redis import redis_health_check

health_blueprint = Blueprint("health")


@health_blueprint.get("/")
async def root(request):
    """
    Method: GET

    Route: /

    Description: Liveness probe for the hosting platform and the keep-alive ping.
    """
    return text("Bot is running!")


@health_blueprint.get("/health")
async def health_check(request):
    """
    Method: GET

    Route: /health

    Description: Health check endpoint.
    """
    return json(
        {
            "health": "ok",
            "redis": redis_health_check(),
            "postgres": postgres_health_check(),
        }
    )
