from typing import Optional
from threading import Lock
from azure.data.tables import TableServiceClient, TableClient
from azure.core.exceptions import ResourceExistsError
from azure.identity import DefaultAzureCredential
import os


class TableConnectionManager:
    _instance: Optional['TableConnectionManager'] = None
    _lock = Lock()
    client: Optional['TableServiceClient'] = None
    content_table: Optional['TableClient'] = None

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    def get_client():
                        connection_string = os.getenv("AZURE_TABLES_CONNECTION_STRING")
                        if connection_string:
                            return TableServiceClient.from_connection_string(connection_string)
                        credential = DefaultAzureCredential()
                        return TableServiceClient(
                            endpoint=os.getenv("AZURE_COSMOSDB_ENDPOINT"),
                            credential=credential
                        )

                    def get_table_client(table_name: str, client: TableServiceClient):
                        try:
                            table_client = client.create_table_if_not_exists(table_name)
                        except ResourceExistsError:
                            table_client = client.get_table_client(table_name)
                        return table_client

                    instance = super().__new__(cls)
                    # シングルトンの初期化
                    instance.client = get_client()
                    instance.content_table = get_table_client(os.getenv("CONTENT_TABLE_NAME", "content"), instance.client)
                    cls._instance = instance

        return cls._instance

    def __init__(self):
        pass
