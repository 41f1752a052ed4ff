"""
FastAPI application

Similar games API over the exported cluster store.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gamecluster.api.routers import similar_games
from gamecluster.utils.config_loader import config
from gamecluster.utils.database import init_db
from gamecluster.utils.logger import get_logger, log_banner

logger = get_logger(__name__)

app = FastAPI(
    title="Game Cluster Similarity API",
    description="Games similar to a given game, served from precomputed clusters",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(similar_games.router)


@app.on_event("startup")
def startup_event():
    """
    Server startup

    - load config.json (built-in defaults apply when it is missing)
    - make sure the store table exists
    """
    log_banner(logger, "Game Cluster API starting")

    try:
        config.load_config()
        logger.info(f"Default strategy: {config.get_default_strategy()}")
    except (FileNotFoundError, ValueError) as e:
        logger.warning(f"Config load failed, using defaults: {e}")

    init_db()


@app.get("/")
def root():
    """
    Service information
    """
    return {
        "service": "Game Cluster Similarity API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "similar_games": "/similar-games",
            "health": "/similar-games/health",
            "docs": "/docs"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gamecluster.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
