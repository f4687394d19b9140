"""
FastAPI dependencies for dependency injection.

The settings, database handle, queue and geolocator are built once in the
application lifespan and stored on app.state. Dependencies read them from
there and hand each request its own session and services.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (build the app with different settings)
- Flexible (swap implementations via config)
"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from clicklink_app.config import Settings
from clicklink_app.database.connection import get_db
from clicklink_app.queue.strategies import QueueStrategy
from clicklink_app.services.geolocation import GeoLocator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_queue(request: Request) -> QueueStrategy:
    return request.app.state.queue


def get_geolocator(request: Request) -> GeoLocator:
    return request.app.state.geolocator


def get_creation_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    from clicklink_app.services.creation_service import CreationService
    return CreationService(db=db, settings=settings)


def get_redirect_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    queue: QueueStrategy = Depends(get_queue),
    geolocator: GeoLocator = Depends(get_geolocator),
):
    from clicklink_app.services.redirect_service import RedirectService
    return RedirectService(db=db, settings=settings, queue=queue, geolocator=geolocator)


def get_url_service(db: Session = Depends(get_db)):
    from clicklink_app.services.url_service import URLService
    return URLService(db=db)


def get_analytics_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    from clicklink_app.services.analytics_service import AnalyticsService
    return AnalyticsService(db=db, settings=settings)
