"""TOKENDROP history API client."""

from typing import Optional

import requests


class HistoryClient:
    """Client for the TOKENDROP ledger history endpoints."""

    def __init__(self, access_token: str, base_url: str = "http://localhost:8000", timeout: float = 30.0):
        """Initialize client with an identity-provider access token."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    @staticmethod
    def _range_params(start: Optional[str], end: Optional[str]) -> dict:
        params = {}
        if start:
            params["start"] = start
        if end:
            params["end"] = end
        return params

    def get_history(self, start: Optional[str] = None, end: Optional[str] = None) -> list[dict]:
        """Ledger events of the caller's organization, newest first."""
        url = f"{self.base_url}/history"
        response = self.session.get(url, params=self._range_params(start, end), timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("data", [])

    def record_event(
        self,
        kind: str,
        recipient_address: str,
        quantity: int,
        item_ids: str,
        external_commit_id: str,
        counterparty_name: Optional[str] = None,
        counterparty_id_number: Optional[str] = None,
        counterparty_email: Optional[str] = None,
    ) -> dict:
        """Record an audit event for an already confirmed external commit."""
        url = f"{self.base_url}/history"
        payload = {
            "kind": kind,
            "recipient_address": recipient_address,
            "quantity": quantity,
            "item_ids": item_ids,
            "external_commit_id": external_commit_id,
            "counterparty_name": counterparty_name,
            "counterparty_id_number": counterparty_id_number,
            "counterparty_email": counterparty_email,
        }
        response = self.session.post(url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def export_csv(self, start: Optional[str] = None, end: Optional[str] = None) -> bytes:
        """Download the CSV export for a local date range."""
        url = f"{self.base_url}/history/export"
        response = self.session.get(url, params=self._range_params(start, end), timeout=self.timeout)
        response.raise_for_status()
        return response.content
