from typing import Optional
from azure.communication.email import EmailClient
import os


class EmailManager:
    _instance: Optional['EmailManager'] = None
    client: Optional[EmailClient] = None

    def __new__(cls):
        if cls._instance is None:
            connection_string = os.getenv("EMAIL_CONNECTION_STRING")
            if not connection_string:
                raise ValueError("EMAIL_CONNECTION_STRING環境変数が設定されていません")
            cls._instance = super().__new__(cls)
            cls._instance.client = EmailClient.from_connection_string(connection_string)
        return cls._instance
