from api.app import create_app
from api.services import Services, build_services

__all__ = ["create_app", "Services", "build_services"]
