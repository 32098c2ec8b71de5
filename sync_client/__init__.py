"""
Polling sync client for the facility reservation API.

FacilityApiClient wraps the HTTP API with httpx and resolves timed-out
reserve/release calls by re-reading the active reservation. PollingSync
keeps a snapshot of the catalog and the user's reservation fresh in a
background thread.
"""

from sync_client.client import FacilityApiClient, SyncClientError, OutcomeUnknown
from sync_client.poller import PollingSync

__all__ = [
    'FacilityApiClient',
    'SyncClientError',
    'OutcomeUnknown',
    'PollingSync',
]
