from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from clicklink_app.services.redirect_service import ClickContext, RedirectService
from clicklink_app.dependencies import get_redirect_service

router = APIRouter(tags=["redirect"])


@router.get("/{short_code}")
def redirect_to_original_url(
    short_code: str,
    request: Request,
    redirect_service: RedirectService = Depends(get_redirect_service)
):
    """
    Redirect to the original URL and record the click.

    404 if the code never existed, 410 if the link is inactive or expired,
    500 if the click could not be stored.

    Sync route: FastAPI runs it in its thread pool, so concurrent redirects
    execute in parallel, each with its own session.
    """
    context = ClickContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer") or request.headers.get("referrer"),
    )
    original_url = redirect_service.resolve(short_code, context)
    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)
