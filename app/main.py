"""FastAPI main application."""
from fastapi import FastAPI, HTTPException
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
from pathlib import Path
import os
import logging

from app.config import init_settings, init_config_store
from app.db.database import init_db
from app.api.handlers import install_exception_handlers
from app.api.routes import router
from app.services.registry import init_registry

# Setup logging (level adjusted from settings after init)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# Support both /config/config.yaml (Docker) and ./config/config.yaml (local dev)
config_path = os.getenv("CONFIG_PATH", "/config/config.yaml")
possible_paths = [
    config_path,
    "/config/config.yaml",
    "./config/config.yaml",
    os.path.join(os.path.dirname(__file__), "..", "config", "config.yaml"),
]

config_path_found = next((p for p in possible_paths if os.path.exists(p)), None)
if config_path_found:
    logger.info(f"Loading settings from: {config_path_found}")
else:
    # Connection credentials live in the database, so the UI can onboard without a file
    logger.warning("No config.yaml found, starting with environment and default settings")
settings = init_settings(config_path_found)
logging.getLogger().setLevel(settings.app.log_level.upper())

# Initialize database (connection settings are stored there)
data_dir = os.getenv("DATA_DIR", settings.app.data_dir)
try:
    init_db(data_dir)
except OSError:
    logger.error(f"Data directory {data_dir} is not writable; mount a volume (-v ./data:/data) or set DATA_DIR")
    raise

# Connection settings + clients rebuilt on every save
store = init_config_store(settings.app.storage_key)
init_registry(store, settings)

# Create FastAPI app
app = FastAPI(title="Media Hub", version="1.0.0")
app.include_router(router)
install_exception_handlers(app)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Media Hub API"}


# Serve the built dashboard (SPA)
frontend_dist = Path(settings.app.frontend_dir or Path(__file__).parent.parent / "frontend" / "dist")
if frontend_dist.exists():
    assets_dir = frontend_dist / "assets"
    if assets_dir.exists():
        app.mount("/assets", StaticFiles(directory=str(assets_dir)), name="assets")

    @app.get("/{full_path:path}")
    async def serve_frontend(full_path: str):
        """Toutes les routes hors API renvoient index.html."""
        if full_path.startswith("api/"):
            raise HTTPException(status_code=404, detail=f"Unknown API route: /{full_path}")
        index_file = frontend_dist / "index.html"
        if not index_file.exists():
            return {"message": "Frontend not built"}
        return FileResponse(str(index_file), media_type="text/html")
