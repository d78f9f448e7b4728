from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import settings
from core.store import GameStore, build_store
from api import games, players

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(store: GameStore = None) -> FastAPI:
    """
    建立 FastAPI app

    store 有傳入時（測試）直接使用，否則在啟動時依 settings 建立，關閉時釋放
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立 store 與資料表
        owns_store = app.state.store is None
        if owns_store:
            app.state.store = build_store(settings)
        yield
        # Shutdown: 釋放自己建立的連線
        if owns_store:
            app.state.store.dispose()
            app.state.store = None

    app = FastAPI(
        title="Friends n Funds API",
        description="Backend API for deposit-and-compete-for-yield games",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.store = store

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(games.router)
    app.include_router(players.router)

    @app.get("/")
    def root():
        return {"message": "Friends n Funds API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
