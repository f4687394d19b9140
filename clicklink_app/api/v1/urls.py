from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from clicklink_app.schemas.url import URLCreate, URLListResponse, URLResponse, URLUpdate
from clicklink_app.security import get_optional_principal, require_principal
from clicklink_app.services.creation_service import CreationService
from clicklink_app.services.url_service import URLService
from clicklink_app.config import Settings
from clicklink_app.dependencies import get_creation_service, get_settings, get_url_service

router = APIRouter(prefix="/urls", tags=["urls"])


@router.post("/", response_model=URLResponse, status_code=status.HTTP_201_CREATED)
def create_short_url(
    url_data: URLCreate,
    principal_id: Optional[int] = Depends(get_optional_principal),
    creation_service: CreationService = Depends(get_creation_service),
    settings: Settings = Depends(get_settings)
):
    """Create a short URL; anonymous when no valid token is sent"""
    url = creation_service.create(
        original_url=url_data.original_url,
        custom_alias=url_data.custom_alias,
        owner_id=principal_id,
        title=url_data.title,
        expires_at=url_data.expires_at,
    )
    return URLResponse.from_url(url, settings.base_url)


@router.get("/", response_model=URLListResponse)
def list_my_urls(
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service),
    settings: Settings = Depends(get_settings)
):
    """URLs owned by the caller, newest first"""
    urls = url_service.list_owned(principal_id)
    return URLListResponse(urls=[URLResponse.from_url(url, settings.base_url) for url in urls])


@router.get("/s/{short_code}", response_model=URLResponse)
def get_public_url_info(
    short_code: str,
    url_service: URLService = Depends(get_url_service),
    settings: Settings = Depends(get_settings)
):
    """Public link info; does not count as a click"""
    return URLResponse.from_url(url_service.get_public(short_code), settings.base_url)


@router.get("/{url_id}", response_model=URLResponse)
def get_url(
    url_id: int,
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service),
    settings: Settings = Depends(get_settings)
):
    return URLResponse.from_url(url_service.get_owned(url_id, principal_id), settings.base_url)


@router.put("/{url_id}", response_model=URLResponse)
def update_url(
    url_id: int,
    changes: URLUpdate,
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service),
    settings: Settings = Depends(get_settings)
):
    url = url_service.update(url_id, principal_id, changes)
    return URLResponse.from_url(url, settings.base_url)


@router.delete("/{url_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_url(
    url_id: int,
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service)
):
    """Delete a URL and, through the cascade, its clicks and analytics"""
    url_service.delete(url_id, principal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
