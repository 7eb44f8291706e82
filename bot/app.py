import logging
import os

from dotenv import load_dotenv

# Services read their configuration at import time
load_dotenv()

from business.code_store import create_code_store
from business.identity_ledger import PostgresIdentityLedger
from business.proof_checker import SocialProofChecker
from business.verification import VerificationOrchestrator
from endpoints.commands import CommandHandler
from endpoints.health import health_blueprint
from endpoints.verification import verification_blueprint
from services.discord_client import (
    DISCORD_TOKEN,
    DiscordRoleGranter,
    create_discord_client,
)
from services.instagram import IG_USERNAME, InstagramSessionManager
from services.postgres import close_postgres_client, initialize_postgres
from services.redis import close_redis, initialize_redis
from utils.route import is_method_open, is_route_open
from workers.keep_alive_worker import get_keep_alive_scheduler

from sanic import Sanic, json
from sanic.request import Request

API_KEY = os.getenv("API_KEY")
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", os.getenv("PORT", "3000")))
CODE_STORE_BACKEND = os.getenv("CODE_STORE_BACKEND", "memory")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger("app")

app = Sanic("ig-verification-bot")
app.blueprint(
    [
        health_blueprint,
        verification_blueprint,
    ]
)

start_keep_alive, stop_keep_alive = get_keep_alive_scheduler()


@app.listener("before_server_start")
async def set_up_connections(app, loop):
    if CODE_STORE_BACKEND == "redis":
        initialize_redis()
    initialize_postgres()

    ledger = PostgresIdentityLedger()
    discord_client = create_discord_client()
    orchestrator = VerificationOrchestrator(
        code_store=create_code_store(CODE_STORE_BACKEND),
        ledger=ledger,
        checker=SocialProofChecker(InstagramSessionManager()),
        granter=DiscordRoleGranter(discord_client),
        operator_handle=IG_USERNAME,
    )
    CommandHandler(orchestrator, ledger).register(discord_client)

    app.ctx.ledger = ledger
    app.ctx.discord_client = discord_client


@app.listener("after_server_start")
async def start_background_services(app, loop):
    app.add_task(app.ctx.discord_client.start(DISCORD_TOKEN), name="discord_client")
    start_keep_alive()


@app.listener("before_server_stop")
async def stop_background_services(app, loop):
    stop_keep_alive()
    await app.ctx.discord_client.close()


@app.listener("after_server_stop")
async def close_connections(app, loop):
    close_redis()
    close_postgres_client()


# Middleware to check API key for protected endpoints
@app.middleware("request")
async def check_api_key(request: Request):
    if is_method_open(request):
        return
    if is_route_open(request):
        return

    api_key = request.headers.get("Authorization")
    if not api_key:
        return json({"error": "API key required"}, status=401)
    if not api_key.startswith("Bearer "):
        return json({"error": "Invalid API key format"}, status=401)
    api_key = api_key[7:]
    if not API_KEY or api_key != API_KEY:
        return json({"error": "Invalid API key"}, status=403)


if __name__ == "__main__":
    # One process only: every worker would otherwise open its own gateway session
    app.run(host=APP_HOST, port=APP_PORT, single_process=True)
