# module backend.app
from backend.app_setup.factory import create_app

# App globale
app = create_app()
