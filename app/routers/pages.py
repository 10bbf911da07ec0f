from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from speech.asr.uploads import ALLOWED_FORMATS


router = APIRouter(tags=["pages"])


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    return request.app.state.templates.TemplateResponse(
        request, "index.html", {"formats": ALLOWED_FORMATS}
    )


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}
