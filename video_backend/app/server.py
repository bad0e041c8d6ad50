from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import logging
import shutil
import uvicorn

from video_backend.config.config import Settings, settings as default_settings
from video_backend.config.logging_config import setup_logging
from video_backend.app.models.messages import UnsuccessfulResponse
from video_backend.app.routes.upload_file_route import route as upload_route
from video_backend.app.utils.CustomHTTPException import CustomHTTPException
from video_backend.middleware.middleware import MaxContentLengthMiddleware

logger = logging.getLogger(__name__)


async def custom_http_exception_handler(request: Request, exc: CustomHTTPException):
    body = UnsuccessfulResponse(status_code=exc.status_code, detail=exc.detail, payload=exc.payload)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="chunked video upload backend",
        description="Receives chunked video uploads, reassembles them and extracts ffprobe metadata",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # chunk size is enforced per part by the controller, whole files may reach MAX_FILESIZE
    app.add_middleware(
        MaxContentLengthMiddleware,
        max_content_length=settings.MAX_CONTENT_LENGTH,
        path_limits={"/api/upload": settings.MAX_FILESIZE + settings.MULTIPART_OVERHEAD},
    )
    app.add_exception_handler(CustomHTTPException, custom_http_exception_handler)

    @app.get("/")
    def home():
        return {"message": "welcome to the video upload backend"}

    @app.get("/health")
    def get_health():
        return {
            "message": "backend running",
            "ffprobe": "available" if shutil.which(settings.FFPROBE_PATH) else "not found",
        }

    app.include_router(upload_route)

    logger.info(f"Base upload directory set to [{settings.UPLOAD_DIR}]")
    return app


app = create_app()


def run() -> None:
    logger.info(f"Initiating server listening at [{default_settings.HOST}:{default_settings.PORT}]")
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)
