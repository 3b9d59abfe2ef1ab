from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from .errors import ApiHttpError, MalformedResponseError, TransportError
from .models import InspectionResult

logger = logging.getLogger(__name__)

URL_INSPECTION_ENDPOINT = "https://searchconsole.googleapis.com/v1/urlInspection/index:inspect"


class InspectionClient:
    """Search Console URL Inspection API を 1 URL ずつ呼び出すクライアント。

    リトライは行わない。失敗は TransportError / ApiHttpError /
    MalformedResponseError に分類して送出する。
    """

    def __init__(
        self,
        *,
        endpoint: str = URL_INSPECTION_ENDPOINT,
        timeout: float = 30.0,
        language_code: str = "en-US",
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.language_code = language_code
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def __enter__(self) -> "InspectionClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def inspect(self, url: str, site_url: str, credential: str) -> InspectionResult:
        payload = {
            "inspectionUrl": url,
            "siteUrl": site_url,
            "languageCode": self.language_code,
        }
        headers = {"Authorization": f"Bearer {credential}"}
        try:
            response = self._client.post(self.endpoint, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise TransportError(f"Request failed for {url}: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise ApiHttpError(response.status_code, response.text)

        logger.debug("検査 API 応答 (%s): %s", url, response.status_code)
        return parse_inspection_response(response.text)


def parse_inspection_response(text: str) -> InspectionResult:
    try:
        data: Any = json.loads(text)
    except ValueError as exc:
        raise MalformedResponseError(f"Invalid JSON response: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("Response body is not a JSON object")
    inspection_result = data.get("inspectionResult")
    if not isinstance(inspection_result, dict):
        raise MalformedResponseError("No inspectionResult in response")
    return InspectionResult.from_payload(inspection_result)
