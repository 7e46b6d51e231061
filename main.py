import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

from social_graph.api.auth import login
from social_graph.api.auth.facebook import FacebookClient
from social_graph.api.relationship import relationship
from social_graph.api.users import users
from social_graph.core.config import settings
from social_graph.core.database import ConnectionManager, ConnectionState, ensure_indexes
from social_graph.services.social import SocialService, utcnow

logger = logging.getLogger(__name__)


def create_app(connection=None, facebook=None, clock=None):
    connection = connection or ConnectionManager()
    facebook = facebook or FacebookClient()
    social = SocialService(connection, facebook, clock=clock or utcnow)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s...", settings.APP_NAME)
        await connection.connect()
        if settings.MONGO_ENSURE_INDEXES and connection.state is ConnectionState.CONNECTED:
            await ensure_indexes(connection.database)
        yield
        connection.close()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.connection = connection
    app.state.social = social

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(login.router, prefix="/auth", tags=["auth"])
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(relationship.router, prefix="/friends", tags=["friends"])

    @app.get("/healthCheck")
    async def healthCheck():
        mongoDb = False
        try:
            if await connection.database.command("ping"):
                mongoDb = True
        except (PyMongoError, RuntimeError) as e:
            logger.warning("Health check failed: %s", e)

        if mongoDb:
            return {"message": "All services are up and running"}
        return {
            "message": "Some services are down",
            "mongoDb": mongoDb,
            "state": connection.state.value,
        }

    return app


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
