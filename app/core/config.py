from typing import List
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from pathlib import Path
import os


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Construction DPP API"
    environment: str = "production"
    database_url: str = "sqlite:///./dpp.db"
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 60 * 24 * 7
    allowed_hosts: str = ""
    static_dir: Path = Path(__file__).parent.parent.parent / "static"
    public_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:5173"
    log_file: str = "logs/application.log"
    log_level: str = "INFO"

    # Content-addressed storage (Pinata / IPFS)
    pinata_jwt: str = ""
    pinata_api_key: str = ""
    pinata_secret_key: str = ""
    pinata_gateway: str = "https://gateway.pinata.cloud"
    storage_max_retries: int = 3
    storage_retry_delay: float = 2.0
    storage_timeout: float = 30.0
    max_file_size: int = 10 * 1024 * 1024
    allowed_file_types: str = (
        "image/jpeg,image/png,image/jpg,application/pdf,application/msword,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    )

    # Ledger (EVM contract)
    ethereum_rpc_url: str = ""
    ethereum_network: str = "sepolia"
    private_key: str = ""
    contract_address: str = ""
    ledger_gas_limit: int = 3_000_000
    ledger_timeout: float = 120.0

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def allowed_file_type_list(self) -> List[str]:
        return [t.strip() for t in self.allowed_file_types.split(",") if t.strip()]


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")


os.makedirs(settings.static_dir, exist_ok=True)
