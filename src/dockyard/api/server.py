from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dockyard.api.dtos import VersionInfo, VersionResponse
from dockyard.api.routers import apps, deployments, settings, sources
from dockyard.config import config
from dockyard.version import get_version

app = FastAPI(
    title="Dockyard API",
    description="Catalog ingestion and docker compose deployments for a home server.",
    version=get_version(),
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(sources.router)
app.include_router(apps.router)
app.include_router(deployments.router)
app.include_router(settings.router)


@app.get("/version", response_model=VersionResponse, tags=["Info"])
def version():
    return VersionResponse(data=VersionInfo(version=get_version()))
