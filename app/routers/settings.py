from pathlib import Path

from fastapi import APIRouter, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from cookin.config import get_llm_config, get_setting, set_setting
from cookin.llm.gateway import set_gateway

router = APIRouter(prefix="/settings", tags=["settings"])
templates = Jinja2Templates(directory=Path(__file__).parent.parent / "templates")


@router.get("", response_class=HTMLResponse)
def settings_page(request: Request, saved: str = ""):
    key = get_setting("llm_api_key") or ""
    masked = key[:8] + "..." if len(key) > 8 else ""
    config = get_llm_config()
    return templates.TemplateResponse(request, "settings.html", {
        "active_tab": "settings",
        "key_set": bool(key),
        "masked_key": masked,
        "provider": config.provider,
        "model": config.model,
        "flash_message": "Settings saved." if saved else None,
        "flash_type": "success",
    })


@router.post("")
def settings_save(llm_api_key: str = Form("")):
    if llm_api_key.strip():
        set_setting("llm_api_key", llm_api_key.strip())
        # Rebuild the provider client with the new key on next use.
        set_gateway(None)
    return RedirectResponse(url="/settings?saved=1", status_code=303)
