from app.api.main import app

__all__ = ["app"]
