"""Session Sync: zero-trust transfer of browser session state.

Cookies, localStorage and sessionStorage of one origin are captured into a
Snapshot, sealed with AES-256-GCM under a key derived from the user's sync
key, and stored in an untrusted remote store addressed by a public
account id. Mutation requires a separately derived write token.
"""
from .version import __version__
from .exceptions import SyncError, ConfigMissing, RemoteError, NoData, DecryptFailed
from .models import (
    CookieEntry,
    KVEntry,
    Snapshot,
    EncryptedEnvelope,
    OriginRecord,
    RestoreOutcome,
    SyncStatus,
    SyncResult,
)
from .browser import AbstractBrowserPage, PageStorage
from .collector import merge_cookies, collect, capture_snapshot
from .reconciler import RestoreReconciler
from .remote import AbstractRemoteStore, RpcRemoteStore, get_remote_store, close_remote_store
from .orchestrator import SyncOrchestrator

__all__ = [
    "__version__",
    "SyncError",
    "ConfigMissing",
    "RemoteError",
    "NoData",
    "DecryptFailed",
    "CookieEntry",
    "KVEntry",
    "Snapshot",
    "EncryptedEnvelope",
    "OriginRecord",
    "RestoreOutcome",
    "SyncStatus",
    "SyncResult",
    "AbstractBrowserPage",
    "PageStorage",
    "merge_cookies",
    "collect",
    "capture_snapshot",
    "RestoreReconciler",
    "AbstractRemoteStore",
    "RpcRemoteStore",
    "get_remote_store",
    "close_remote_store",
    "SyncOrchestrator",
]
