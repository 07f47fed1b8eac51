#!/usr/bin/env python
# Base service for API communication
import asyncio
import json
from typing import Any, Dict, Optional

import requests


class APIError(Exception):
    """Exception raised for API errors"""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API Error ({status_code}): {detail}")


class DocumentNotFound(APIError):
    """The requested document does not exist in the store"""
    def __init__(self, detail: str = "not found"):
        super().__init__(404, detail)


class BaseService:
    """Base class for API services.

    requests is blocking, so every call is pushed to a worker thread and the
    event loop stays free while the store answers.
    """

    def __init__(self, api_url: str, timeout: float = 10.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        """Get common headers for API requests"""
        return {
            "Content-Type": "application/json"
        }

    def _handle_response(self, response: requests.Response) -> Any:
        """Process API response and handle errors"""
        if 200 <= response.status_code < 300:
            if response.status_code == 204 or not response.content:
                return {}

            try:
                return response.json()
            except json.JSONDecodeError:
                return {"message": response.text}

        try:
            error_data = response.json()
            detail = error_data.get("detail") or error_data.get("error") or "Unknown error"
        except (json.JSONDecodeError, AttributeError):
            detail = response.text or "Unknown error"

        if response.status_code == 404:
            raise DocumentNotFound(str(detail))
        raise APIError(response.status_code, str(detail))

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        url = f"{self.api_url}{endpoint}"
        headers = self._get_headers()

        try:
            response = await asyncio.to_thread(
                requests.request, method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise APIError(500, f"Request failed: {str(e)}") from e
        return self._handle_response(response)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make GET request to API"""
        return await self._request("GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Any) -> Any:
        """Make POST request to API"""
        return await self._request("POST", endpoint, json=data)

    async def put(self, endpoint: str, data: Any) -> Any:
        """Make PUT request to API"""
        return await self._request("PUT", endpoint, json=data)

    async def delete(self, endpoint: str) -> Any:
        """Make DELETE request to API"""
        return await self._request("DELETE", endpoint)
