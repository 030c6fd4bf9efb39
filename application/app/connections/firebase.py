"""
Firebase Admin app used as the user store.
"""
import firebase_admin
from firebase_admin import credentials

from app.config.settings import AuthConfigs
from app.logging.utils import get_app_logger

configs = AuthConfigs()
logger = get_app_logger(__name__)


def get_firebase_app():
    """Return the named Firebase app, initializing it from the service account on first use."""
    try:
        return firebase_admin.get_app(configs.FIREBASE_APP_NAME)
    except ValueError:
        cred = credentials.Certificate(configs.FIREBASE_CREDENTIALS_PATH)
        firebase_app = firebase_admin.initialize_app(
            cred,
            {"databaseURL": configs.FIREBASE_DATABASE_URL},
            name=configs.FIREBASE_APP_NAME,
        )
        logger.info(f"Firebase app initialized | name={configs.FIREBASE_APP_NAME} database={configs.FIREBASE_DATABASE_URL}")
        return firebase_app
