import json
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from loguru import logger

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError


PINATA_BASE_URL = "https://api.pinata.cloud"
PIN_FILE_PATH = "/pinning/pinFileToIPFS"
PIN_JSON_PATH = "/pinning/pinJSONToIPFS"


class IPFSStorageClient:
    """
    Pinata-backed content-addressed storage.

    Returns content identifiers (CIDs) for uploaded blobs and JSON documents.
    Every failure is raised as ExternalServiceError; callers on the
    lifecycle path downgrade it to a warning.
    """

    def __init__(
        self,
        settings: Settings,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        base_url: str = PINATA_BASE_URL,
    ):
        self.settings = settings
        self.http = http or requests.Session()
        self.sleep = sleep
        self.base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        s = self.settings
        return bool(s.pinata_jwt or (s.pinata_api_key and s.pinata_secret_key))

    def _auth_headers(self) -> Dict[str, str]:
        if self.settings.pinata_jwt:
            return {"Authorization": f"Bearer {self.settings.pinata_jwt}"}
        if self.settings.pinata_api_key and self.settings.pinata_secret_key:
            return {
                "pinata_api_key": self.settings.pinata_api_key,
                "pinata_secret_api_key": self.settings.pinata_secret_key,
            }
        raise ExternalServiceError("IPFS storage credentials are not configured.")

    def _post(self, path: str, **kwargs) -> Dict[str, Any]:
        headers = self._auth_headers()
        headers.update(kwargs.pop("headers", {}))
        try:
            res = self.http.post(
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.settings.storage_timeout,
                **kwargs,
            )
            res.raise_for_status()
            return res.json()
        except requests.RequestException as e:
            raise ExternalServiceError(f"IPFS request failed: {e}")
        except ValueError as e:
            raise ExternalServiceError(f"IPFS returned an invalid response: {e}")

    @staticmethod
    def _cid(payload: Dict[str, Any]) -> str:
        cid = payload.get("IpfsHash")
        if not cid:
            raise ExternalServiceError("IPFS response did not include a content identifier.")
        return cid

    def upload_json(self, document: Dict[str, Any], name: Optional[str] = None) -> str:
        payload: Dict[str, Any] = {"pinataContent": document}
        if name:
            payload["pinataMetadata"] = {"name": name}
        result = self._post(
            PIN_JSON_PATH,
            data=json.dumps(payload, default=str),
            headers={"Content-Type": "application/json"},
        )
        cid = self._cid(result)
        logger.info(f"JSON uploaded to IPFS: {cid}")
        return cid

    def upload_file(self, content: bytes, filename: str, content_type: str = "application/octet-stream") -> str:
        result = self._post(
            PIN_FILE_PATH,
            files={"file": (filename, content, content_type)},
            data={"pinataMetadata": json.dumps({"name": filename})},
        )
        cid = self._cid(result)
        logger.info(f"File uploaded to IPFS: {cid} ({filename})")
        return cid

    def upload_with_retry(self, upload: Callable[[], str], retries: Optional[int] = None) -> str:
        """
        Runs `upload` up to `retries` times, waiting retry_delay * attempt
        seconds between attempts.
        """
        if not self.configured:
            raise ExternalServiceError("IPFS storage credentials are not configured.")
        retries = retries or self.settings.storage_max_retries
        for attempt in range(1, retries + 1):
            try:
                return upload()
            except ExternalServiceError as e:
                logger.warning(f"Upload attempt {attempt}/{retries} failed: {e.message}")
                if attempt == retries:
                    raise ExternalServiceError(
                        f"Failed to upload after {retries} attempts: {e.message}"
                    )
                self.sleep(self.settings.storage_retry_delay * attempt)

    def upload_many(self, files: List[Tuple[bytes, str, str]]) -> List[str]:
        return [
            self.upload_with_retry(lambda f=f: self.upload_file(*f))
            for f in files
        ]

    def retrieve(self, cid: str) -> Any:
        """
        Fetches content through the gateway: parsed JSON, text, or raw bytes
        depending on the returned content type.
        """
        try:
            res = self.http.get(self.gateway_url(cid), timeout=self.settings.storage_timeout)
            res.raise_for_status()
        except requests.RequestException as e:
            raise ExternalServiceError(f"Failed to retrieve {cid} from IPFS: {e}")

        content_type = res.headers.get("Content-Type", "")
        if "json" in content_type:
            try:
                return res.json()
            except ValueError:
                return res.text
        if content_type.startswith("text/"):
            return res.text
        return res.content

    def gateway_url(self, cid: Optional[str]) -> Optional[str]:
        if not cid:
            return None
        return f"{self.settings.pinata_gateway.rstrip('/')}/ipfs/{cid}"

