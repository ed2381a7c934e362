from pathlib import Path

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

router = APIRouter()


def _page(request: Request, name: str) -> FileResponse:
    path = Path(request.app.state.settings.static_dir) / name
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"{name} not found")
    return FileResponse(path, media_type="text/html")


@router.get("/", include_in_schema=False)
def index(request: Request):
    return _page(request, "index.html")


@router.get("/image", include_in_schema=False)
def image(request: Request):
    """Image analyzer frontend."""
    return _page(request, "image.html")
