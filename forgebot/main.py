from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import action, health
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware

setup_logging()

app = FastAPI(
    title="ForgeBot API",
    description="Conversational buy, sell and withdraw flows on Base",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])
app.include_router(action.router, tags=["Turns"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "ForgeBot API",
        "version": "0.1.0",
        "chain": settings.chain_slug,
        "docs": "/docs",
        "health": "/healthz",
    }


def main() -> None:
    import uvicorn

    uvicorn.run(
        "forgebot.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
