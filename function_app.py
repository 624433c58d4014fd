import azure.functions as func
import logging
from api import app as fastapi_app
from managers.table_manager import TableConnectionManager

logger = logging.getLogger(__name__)

try:
    TableConnectionManager()
except Exception as e:
    # テーブルが作れなくてもHTTPは起動し、各リクエストでストアエラーを返す
    logger.error("Content table initialization failed: %s", e)

app = func.AsgiFunctionApp(app=fastapi_app, http_auth_level=func.AuthLevel.ANONYMOUS)
